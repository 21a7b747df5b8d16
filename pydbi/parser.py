from __future__ import annotations

import re
from dataclasses import dataclass

# Characters that may follow a named placeholder prefix (``:``, ``@`` or ``$``).
_NAME_RE: re.Pattern[str] = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_DIGITS_RE: re.Pattern[str] = re.compile(r"[0-9]+")

_QUOTES: dict[str, str] = {"'": "'", '"': '"', "`": "`", "[": "]"}
_NAMED_PREFIXES: frozenset[str] = frozenset({":", "@", "$"})


def strip_placeholder_prefix(name: str) -> str:
    """Remove a leading ``:``, ``@`` or ``$`` from a parameter name."""
    if name and name[0] in _NAMED_PREFIXES:
        return name[1:]
    return name


@dataclass(frozen=True)
class Placeholders:
    """Placeholders found in a statement.

    Attributes:
        positional: Number of positional slots. Anonymous ``?`` placeholders
            take the next free slot and ``?NNN`` addresses slot ``NNN``
            directly, so this is the highest slot referenced.
        names: Distinct named placeholders without their prefix, in order of
            first appearance.
    """

    positional: int = 0
    names: tuple[str, ...] = ()

    @property
    def is_named(self) -> bool:
        return bool(self.names)

    @property
    def is_positional(self) -> bool:
        return self.positional > 0

    @property
    def is_mixed(self) -> bool:
        return self.is_named and self.is_positional

    def __bool__(self) -> bool:
        return self.is_named or self.is_positional


class PlaceholderParser:
    """Locate parameter placeholders in SQL text.

    Recognizes ``?``, ``?NNN``, ``:name``, ``@name`` and ``$name``. Text inside
    string literals, quoted identifiers and comments is ignored. The parser
    does not validate the SQL itself.
    """

    def parse(self, statement: str) -> Placeholders:
        positional = 0
        names: list[str] = []
        length = len(statement)
        i = 0
        while i < length:
            char = statement[i]
            if char in _QUOTES:
                i = self._skip_quoted(statement, i, _QUOTES[char])
            elif statement.startswith("--", i):
                end = statement.find("\n", i)
                i = length if end == -1 else end + 1
            elif statement.startswith("/*", i):
                end = statement.find("*/", i + 2)
                i = length if end == -1 else end + 2
            elif char == "?":
                match = _DIGITS_RE.match(statement, i + 1)
                if match:
                    positional = max(positional, int(match.group()))
                    i = match.end()
                else:
                    positional += 1
                    i += 1
            elif char in _NAMED_PREFIXES:
                match = _NAME_RE.match(statement, i + 1)
                if match and not statement.startswith("::", i):
                    if match.group() not in names:
                        names.append(match.group())
                    i = match.end()
                else:
                    i += 2 if statement.startswith("::", i) else 1
            else:
                i += 1
        return Placeholders(positional=positional, names=tuple(names))

    @staticmethod
    def _skip_quoted(statement: str, start: int, closing: str) -> int:
        """Return the index just past the quoted section opened at ``start``.

        A doubled closing quote inside the section is an escaped quote.
        An unterminated section runs to the end of the statement.
        """
        i = start + 1
        length = len(statement)
        while i < length:
            end = statement.find(closing, i)
            if end == -1:
                return length
            if closing != "]" and statement.startswith(closing * 2, end):
                i = end + 2
                continue
            return end + 1
        return length
