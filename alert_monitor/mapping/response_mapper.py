"""Turn a raw API response into normalized items."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from typing import Any

from .path_resolver import resolve_path


@dataclass(frozen=True)
class MappingPaths:
    items_path: str = "items"
    id_path: str = "id"
    timestamp_path: str = "createdAt"
    title_path: str = ""
    details_path: str = ""


@dataclass(frozen=True)
class Item:
    id: str | int | float | None
    timestamp: str | None = None
    title: str | None = None
    details: str | None = None
    raw: Any = None

    @property
    def id_key(self) -> str | None:
        """String form of the id as stored in state; ``None`` when the id is missing."""
        if self.id is None:
            return None
        if isinstance(self.id, str):
            return self.id
        return json.dumps(self.id)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _as_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    try:
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"), sort_keys=True)
    except (TypeError, ValueError):
        return str(value)


def _as_id(value: Any) -> str | int | float | None:
    if value is None or (isinstance(value, (str, int, float)) and not isinstance(value, bool)):
        return value
    return _as_text(value)


def extract_item_list(raw_response: Any, items_path: str | None) -> list[Any]:
    """Locate the item array, falling back through common envelope shapes."""
    candidate = resolve_path(raw_response, items_path)
    if isinstance(candidate, list):
        return candidate
    if isinstance(raw_response, list):
        return raw_response
    if isinstance(raw_response, dict) and isinstance(raw_response.get("items"), list):
        return raw_response["items"]
    return []


def map_items(raw_response: Any, paths: MappingPaths) -> list[Item]:
    items: list[Item] = []
    for element in extract_item_list(raw_response, paths.items_path):
        items.append(
            Item(
                id=_as_id(resolve_path(element, paths.id_path)),
                timestamp=_as_text(resolve_path(element, paths.timestamp_path)),
                title=_as_text(resolve_path(element, paths.title_path)) if paths.title_path else None,
                details=_as_text(resolve_path(element, paths.details_path)) if paths.details_path else None,
                raw=element,
            )
        )
    return items
