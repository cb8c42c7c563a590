from __future__ import annotations

import pytest

from alert_monitor.mapping import is_valid_path, resolve_path, tokenize_path


def test_resolve_nested_index() -> None:
    assert resolve_path({"a": {"b": [10, 20]}}, "a.b[1]") == 20


def test_resolve_missing_key_is_none() -> None:
    assert resolve_path({}, "a.b") is None


def test_resolve_on_none_root_is_none() -> None:
    assert resolve_path(None, "a") is None


def test_resolve_empty_path_is_none() -> None:
    assert resolve_path({"a": 1}, "") is None
    assert resolve_path({"a": 1}, None) is None


def test_index_out_of_range_is_none() -> None:
    assert resolve_path({"a": [1]}, "a[3]") is None


def test_index_on_non_list_is_none() -> None:
    assert resolve_path({"a": {"0": "x"}}, "a[0]") is None


def test_numeric_dot_segment_indexes_lists() -> None:
    assert resolve_path({"rows": [{"id": "r0"}, {"id": "r1"}]}, "rows.1.id") == "r1"


def test_chained_indexes() -> None:
    assert resolve_path({"grid": [[1, 2], [3, 4]]}, "grid[1][0]") == 3


def test_falsy_values_are_returned() -> None:
    data = {"a": {"zero": 0, "empty": "", "flag": False}}
    assert resolve_path(data, "a.zero") == 0
    assert resolve_path(data, "a.empty") == ""
    assert resolve_path(data, "a.flag") is False


def test_tokenize_mixed_path() -> None:
    assert tokenize_path("data.items[0].id") == ["data", "items", 0, "id"]


def test_non_numeric_bracket_is_skipped() -> None:
    assert tokenize_path("a[x].b") == ["a", "b"]
    assert resolve_path({"a": {"x": 5}}, "a[x]") == {"x": 5}
    assert resolve_path({"a": {"b": 1, "x": {"b": 2}}}, "a[x].b") == 1


def test_stray_closing_bracket_is_skipped() -> None:
    assert tokenize_path("a].b") == ["a", "b"]


@pytest.mark.parametrize(
    "path,expected",
    [
        ("a.b[1]", True),
        ("items", True),
        ("[0].id", True),
        ("a..b", False),
        ("a[x]", False),
        ("a.", False),
        ("", False),
    ],
)
def test_is_valid_path(path: str, expected: bool) -> None:
    assert is_valid_path(path) is expected
