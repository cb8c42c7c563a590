"""JSON document helpers shared by the registry and the state store."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


def read_json_document(path: Path) -> dict[str, Any]:
    """Best-effort read: a missing, empty or corrupt file reads as ``{}``."""
    try:
        if not path.exists():
            return {}
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        logger.error("Failed to read JSON document", path=str(path), error=str(e))
        return {}

    if not content.strip():
        logger.warning("JSON document is empty, using defaults", path=str(path))
        return {}

    try:
        data = json.loads(content)
    except ValueError as e:
        logger.error("JSON document is corrupt, using defaults", path=str(path), error=str(e))
        return {}

    if not isinstance(data, dict):
        logger.error("JSON document is not an object, using defaults", path=str(path))
        return {}
    return data


def write_json_atomic(path: Path, payload: dict[str, Any]) -> None:
    """Write via a temp file + replace so readers never observe a partial document."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f"{path.name}.{os.getpid()}.tmp")
    tmp.write_text(json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True), encoding="utf-8")
    tmp.replace(path)
