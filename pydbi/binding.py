from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

import pandas as pd

from pydbi.error import MalformedBindingSet
from pydbi.parser import Placeholders, strip_placeholder_prefix

_logger = logging.getLogger(__name__)


def _is_scalar(value: Any) -> bool:
    if isinstance(value, (str, bytes, bytearray, memoryview)):
        return True
    if hasattr(value, "__array__"):
        # numpy scalars expose __array__ too
        return getattr(value, "ndim", 1) == 0
    return not isinstance(value, Sequence)


def _to_column(value: Any) -> list[Any]:
    if _is_scalar(value):
        return [value.item() if hasattr(value, "ndim") else value]
    if hasattr(value, "tolist"):
        return list(value.tolist())
    return list(value)


@dataclass(frozen=True)
class BindingSet:
    """Parameter values for one or more executions of a statement.

    A binding set is either all-named or all-positional. Each parameter holds a
    column of values and every column has the same length, the batch size.
    Row ``i`` of the set is the parameter tuple (or mapping) used for the
    ``i``-th execution of the statement.

    Attributes:
        names: Parameter names without prefix, or ``None`` for a positional set.
        columns: One list of values per parameter, in ``names`` order or in
            positional order.

    Example:
        >>> BindingSet.from_params([1, 2]).size
        1
        >>> BindingSet.from_params({"id": [1, 2, 3]}).size
        3
    """

    names: tuple[str, ...] | None
    columns: tuple[list[Any], ...]

    @classmethod
    def from_params(
        cls,
        params: Mapping[Any, Any] | Sequence[Any] | pd.DataFrame | None = None,
        **named: Any,
    ) -> BindingSet:
        """Build a binding set from user supplied values.

        Args:
            params: A mapping keyed by parameter name (``str``) or by 1-based
                position (``int``), a sequence of positional values, or a
                pandas DataFrame whose columns are parameter names.
            **named: Named values.

        Raises:
            MalformedBindingSet: If named and positional values are mixed or
                the value columns differ in length.
        """
        if params is not None and named:
            if isinstance(params, (Mapping, pd.DataFrame)):
                raise MalformedBindingSet(
                    "Pass named parameters either as a mapping or as keywords, not both."
                )
            raise MalformedBindingSet("Named and positional parameters cannot be mixed.")

        if named:
            return cls._from_named(named.items())
        if params is None:
            return cls(names=None, columns=())
        if isinstance(params, pd.DataFrame):
            labels = list(params.columns)
            if not all(isinstance(label, str) for label in labels):
                raise MalformedBindingSet("DataFrame parameters must have string column labels.")
            return cls._from_named((label, params[label]) for label in labels)
        if isinstance(params, Mapping):
            return cls._from_mapping(params)
        if isinstance(params, (str, bytes)) or not (
            isinstance(params, Sequence) or hasattr(params, "__array__")
        ):
            raise MalformedBindingSet(
                f"Unsupported parameter container: {type(params).__name__}."
            )
        return cls._validated(None, tuple(_to_column(v) for v in params))

    @classmethod
    def _from_mapping(cls, params: Mapping[Any, Any]) -> BindingSet:
        keys = list(params.keys())
        str_keys = [k for k in keys if isinstance(k, str)]
        int_keys = [k for k in keys if isinstance(k, int) and not isinstance(k, bool)]
        if len(str_keys) + len(int_keys) != len(keys):
            raise MalformedBindingSet("Parameter keys must be names (str) or positions (int).")
        if str_keys and int_keys:
            raise MalformedBindingSet("Named and positional parameters cannot be mixed.")
        if int_keys:
            if sorted(int_keys) != list(range(1, len(int_keys) + 1)):
                raise MalformedBindingSet(
                    f"Positional parameter keys must be 1..{len(int_keys)}, got {sorted(int_keys)}."
                )
            return cls._validated(
                None, tuple(_to_column(params[k]) for k in sorted(int_keys))
            )
        return cls._from_named(params.items())

    @classmethod
    def _from_named(cls, items) -> BindingSet:
        names: list[str] = []
        columns: list[list[Any]] = []
        for key, value in items:
            name = strip_placeholder_prefix(key)
            if not name:
                raise MalformedBindingSet("Parameter names must not be empty.")
            if name in names:
                raise MalformedBindingSet(f"Duplicate parameter name: {name}.")
            names.append(name)
            columns.append(_to_column(value))
        return cls._validated(tuple(names), tuple(columns))

    @classmethod
    def _validated(cls, names: tuple[str, ...] | None, columns: tuple[list[Any], ...]):
        lengths = {len(c) for c in columns}
        if len(lengths) > 1:
            raise MalformedBindingSet(
                f"All parameters must have the same length, got lengths {sorted(lengths)}."
            )
        return cls(names=names, columns=columns)

    @property
    def is_named(self) -> bool:
        return self.names is not None

    @property
    def size(self) -> int:
        """Number of executions this set describes."""
        if not self.columns:
            return 1
        return len(self.columns[0])

    def __len__(self) -> int:
        return len(self.columns)

    def rows(self) -> Iterator[tuple[Any, ...] | dict[str, Any]]:
        """Yield the parameters of each execution in order."""
        if not self.columns:
            yield {} if self.is_named else ()
            return
        for i in range(self.size):
            if self.names is not None:
                yield {name: column[i] for name, column in zip(self.names, self.columns, strict=True)}
            else:
                yield tuple(column[i] for column in self.columns)

    def check(self, placeholders: Placeholders) -> None:
        """Verify that this set fits the placeholders of a statement.

        Raises:
            MalformedBindingSet: If the statement mixes placeholder kinds, the
                kind of the set differs from the statement's, or the count or
                names do not match.
        """
        if placeholders.is_mixed:
            raise MalformedBindingSet(
                "Statement mixes named and positional placeholders and cannot be bound."
            )
        if self.names is not None:
            if placeholders.is_positional:
                raise MalformedBindingSet(
                    "Named parameters supplied for a statement with positional placeholders."
                )
            expected = set(placeholders.names)
            actual = set(self.names)
            if expected != actual:
                missing = sorted(expected - actual)
                unexpected = sorted(actual - expected)
                raise MalformedBindingSet(
                    f"Parameter names do not match placeholders "
                    f"(missing: {missing}, unexpected: {unexpected})."
                )
        else:
            if placeholders.is_named:
                raise MalformedBindingSet(
                    "Positional parameters supplied for a statement with named placeholders."
                )
            if len(self.columns) != placeholders.positional:
                raise MalformedBindingSet(
                    f"Statement has {placeholders.positional} placeholder(s), "
                    f"but {len(self.columns)} parameter(s) were supplied."
                )
        _logger.debug("Binding %d parameter(s) x %d row(s).", len(self.columns), self.size)
