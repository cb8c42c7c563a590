from __future__ import annotations

from alert_monitor.mapping import Item, MappingPaths, map_items
from alert_monitor.mapping.response_mapper import extract_item_list


def test_scenario_data_envelope() -> None:
    paths = MappingPaths(items_path="data", id_path="id")
    items = map_items({"data": [{"id": 1}, {"id": 2}]}, paths)
    assert [i.id for i in items] == [1, 2]
    assert [i.id_key for i in items] == ["1", "2"]


def test_top_level_array_used_when_items_path_unresolvable() -> None:
    raw = [{"id": "a"}, {"id": "b"}]
    items = map_items(raw, MappingPaths(items_path="does.not.exist"))
    assert [i.id for i in items] == ["a", "b"]


def test_falls_back_to_items_key() -> None:
    raw = {"items": [{"id": 7}], "meta": {}}
    assert extract_item_list(raw, "results") == [{"id": 7}]


def test_unrecognised_shape_maps_to_nothing() -> None:
    assert map_items({"message": "hello"}, MappingPaths(items_path="data")) == []
    assert map_items(None, MappingPaths()) == []
    assert map_items("plain text", MappingPaths()) == []


def test_mapping_is_pure() -> None:
    raw = {"data": {"rows": [{"payment_id": "p1", "approval_date": "2024-01-01", "meta": {"amount": 10}}]}}
    paths = MappingPaths(
        items_path="data.rows",
        id_path="payment_id",
        timestamp_path="approval_date",
        details_path="meta",
    )
    assert map_items(raw, paths) == map_items(raw, paths)


def test_fields_mapped_and_stringified() -> None:
    raw = {"rows": [{"ref": "p1", "at": 1714560000, "name": "Invoice", "meta": {"b": 2, "a": 1}}]}
    paths = MappingPaths(
        items_path="rows",
        id_path="ref",
        timestamp_path="at",
        title_path="name",
        details_path="meta",
    )
    (item,) = map_items(raw, paths)
    assert item == Item(
        id="p1",
        timestamp="1714560000",
        title="Invoice",
        details='{"a":1,"b":2}',
        raw=raw["rows"][0],
    )


def test_optional_fields_left_empty_without_paths() -> None:
    (item,) = map_items([{"id": "x", "title": "t", "details": "d"}], MappingPaths())
    assert item.title is None
    assert item.details is None


def test_missing_id_maps_to_none() -> None:
    (item,) = map_items([{"other": 1}], MappingPaths())
    assert item.id is None
    assert item.id_key is None


def test_non_scalar_id_becomes_json_text() -> None:
    (item,) = map_items([{"id": {"k": 1}}], MappingPaths())
    assert item.id == '{"k":1}'
