import numpy as np
import pandas as pd
import pytest

from pydbi.binding import BindingSet
from pydbi.error import MalformedBindingSet, ProgrammingError
from pydbi.parser import Placeholders


class TestBindingSet:
    def test_positional(self):
        binding = BindingSet.from_params([1, "a"])
        assert not binding.is_named
        assert binding.names is None
        assert binding.columns == ([1], ["a"])
        assert binding.size == 1
        assert len(binding) == 2
        assert list(binding.rows()) == [(1, "a")]

    def test_positional_batch(self):
        binding = BindingSet.from_params([[1, 2, 3], ["a", "b", "c"]])
        assert binding.size == 3
        assert list(binding.rows()) == [(1, "a"), (2, "b"), (3, "c")]

    def test_positional_mapping(self):
        binding = BindingSet.from_params({2: "b", 1: "a"})
        assert not binding.is_named
        assert list(binding.rows()) == [("a", "b")]

    def test_named(self):
        binding = BindingSet.from_params({"x": [1, 2], ":y": [3, 4]})
        assert binding.is_named
        assert binding.names == ("x", "y")
        assert list(binding.rows()) == [{"x": 1, "y": 3}, {"x": 2, "y": 4}]

    def test_named_keywords(self):
        binding = BindingSet.from_params(lo=1, hi=5)
        assert binding.names == ("lo", "hi")
        assert list(binding.rows()) == [{"lo": 1, "hi": 5}]

    def test_data_frame(self):
        binding = BindingSet.from_params(pd.DataFrame({"lo": [0, 10], "hi": [1, 11]}))
        assert binding.names == ("lo", "hi")
        assert binding.size == 2
        rows = list(binding.rows())
        assert rows == [{"lo": 0, "hi": 1}, {"lo": 10, "hi": 11}]
        assert all(type(v) is int for row in rows for v in row.values())

    def test_numpy_values(self):
        binding = BindingSet.from_params([np.array([1, 2]), np.array([3, 4])])
        assert binding.columns == ([1, 2], [3, 4])
        assert binding.size == 2

    def test_numpy_scalar(self):
        binding = BindingSet.from_params([np.int64(3), np.float64(0.5)])
        assert binding.columns == ([3], [0.5])
        assert type(binding.columns[0][0]) is int

    def test_empty(self):
        binding = BindingSet.from_params()
        assert binding.size == 1
        assert len(binding) == 0
        assert list(binding.rows()) == [()]

    def test_zero_rows(self):
        binding = BindingSet.from_params(x=[])
        assert binding.size == 0
        assert list(binding.rows()) == []

    @pytest.mark.parametrize(
        ("params", "named"),
        [
            ([1], {"x": 2}),
            ({"x": 1, 1: 2}, {}),
            ({"x": 1}, {"y": 2}),
            ({1: "a", 3: "b"}, {}),
            ({1.5: "a"}, {}),
            ([[1, 2], [3]], {}),
            (None, {"x": [1, 2], "y": [1]}),
            ("abc", {}),
            (42, {}),
            (pd.DataFrame({0: [1]}), {}),
        ],
    )
    def test_malformed(self, params, named):
        with pytest.raises(MalformedBindingSet):
            BindingSet.from_params(params, **named)

    def test_malformed_is_programming_error(self):
        with pytest.raises(ProgrammingError):
            BindingSet.from_params([1], x=2)


class TestBindingSetCheck:
    def test_positional(self):
        BindingSet.from_params([1, 2]).check(Placeholders(positional=2))
        BindingSet.from_params().check(Placeholders())

    def test_named(self):
        BindingSet.from_params(hi=1, lo=2).check(Placeholders(names=("lo", "hi")))

    @pytest.mark.parametrize(
        ("binding", "placeholders"),
        [
            (BindingSet.from_params([1]), Placeholders(positional=2)),
            (BindingSet.from_params([1, 2]), Placeholders(positional=1)),
            (BindingSet.from_params([1]), Placeholders()),
            (BindingSet.from_params([1]), Placeholders(names=("x",))),
            (BindingSet.from_params(x=1), Placeholders(positional=1)),
            (BindingSet.from_params(x=1), Placeholders(names=("y",))),
            (BindingSet.from_params(x=1), Placeholders(names=("x", "y"))),
            (BindingSet.from_params([1, 2]), Placeholders(positional=1, names=("x",))),
        ],
    )
    def test_mismatch(self, binding, placeholders):
        with pytest.raises(MalformedBindingSet):
            binding.check(placeholders)

    def test_mismatch_message(self):
        with pytest.raises(MalformedBindingSet, match=r"missing: \['y'\], unexpected: \['z'\]"):
            BindingSet.from_params(x=1, z=2).check(Placeholders(names=("x", "y")))
