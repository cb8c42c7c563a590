"""Endpoint registry: immutable base configs layered under runtime overrides."""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable

import structlog
from pydantic import ValidationError

from ..config import MonitorSettings
from ..errors import EndpointConfigError, EndpointNotFoundError
from ..mapping import is_valid_path
from ..storage import read_json_document, write_json_atomic
from .models import DERIVED_FIELDS, EndpointConfig, GlobalSettings, RemoveResult

logger = structlog.get_logger(__name__)

_MAPPING_PATH_FIELDS = ("items_path", "id_path", "timestamp_path", "title_path", "details_path")
_OPTIONAL_MAPPING_PATHS = {"title_path", "details_path"}


def validate_mapping_paths(config: EndpointConfig) -> list[str]:
    """Return human-readable warnings for mapping paths that look malformed."""
    warnings: list[str] = []
    for name in _MAPPING_PATH_FIELDS:
        value = getattr(config, name)
        if not value:
            if name not in _OPTIONAL_MAPPING_PATHS:
                warnings.append(f"{name} is empty; mapped items will have no value for it")
            continue
        if not is_valid_path(value):
            warnings.append(f"{name} {value!r} is not a valid dot/bracket path")
    return warnings


def validate_endpoint(config: EndpointConfig) -> None:
    """Raise ``EndpointConfigError`` unless the endpoint can be polled and can notify someone."""
    if not (config.api_endpoint or "").strip():
        raise EndpointConfigError(f"Endpoint '{config.tag}' has no api_endpoint")
    if not (config.sms_ready() or config.email_ready()):
        raise EndpointConfigError(
            f"Endpoint '{config.tag}' has no enabled channel with recipients and a delivery endpoint"
        )


class EndpointRegistry:
    """Owns every endpoint configuration, keyed by tag.

    Base configs come from settings and never change at runtime. Overrides,
    the active tag set and global settings are persisted in one JSON document::

        {"activeEndpointTags": [...], "endpointOverrides": {...}, "globalSettings": {...}}

    The registry never schedules anything; callers restart or stop timers after
    ``upsert`` / ``remove``.
    Reads and writes are synchronous whole-file JSON operations.
    """

    def __init__(
        self,
        path: Path | str,
        settings: MonitorSettings,
        base_endpoints: dict[str, dict[str, Any]] | None = None,
    ):
        self.path = Path(path)
        self.settings = settings
        raw_base = settings.endpoints if base_endpoints is None else base_endpoints
        self._base: dict[str, dict[str, Any]] = {
            tag: {**(fields or {}), "tag": tag} for tag, fields in raw_base.items()
        }
        self._lock = threading.Lock()

    # --- persistence -------------------------------------------------------

    def _load(self) -> dict[str, Any]:
        doc = read_json_document(self.path)
        overrides = doc.get("endpointOverrides")
        active = doc.get("activeEndpointTags")
        global_settings = doc.get("globalSettings")
        return {
            "endpointOverrides": overrides if isinstance(overrides, dict) else {},
            "activeEndpointTags": [t for t in active if isinstance(t, str)] if isinstance(active, list) else [],
            "globalSettings": global_settings if isinstance(global_settings, dict) else {},
        }

    def _save(self, doc: dict[str, Any]) -> None:
        write_json_atomic(self.path, doc)

    # --- global settings ---------------------------------------------------

    def global_settings(self) -> GlobalSettings:
        with self._lock:
            stored = self._load()["globalSettings"]
        return self._effective_globals(stored)

    def update_global_settings(self, partial: dict[str, Any]) -> GlobalSettings:
        with self._lock:
            doc = self._load()
            current = dict(doc["globalSettings"])
            for key in GlobalSettings.model_fields:
                if key in partial and partial[key] is not None:
                    current[key] = str(partial[key]).strip()
            doc["globalSettings"] = current
            self._save(doc)
        logger.info("Updated global settings", fields=sorted(k for k in partial if k in GlobalSettings.model_fields))
        return self._effective_globals(current)

    def _effective_globals(self, stored: dict[str, Any]) -> GlobalSettings:
        return GlobalSettings(
            sms_endpoint=str(stored.get("sms_endpoint") or self.settings.sms_endpoint),
            email_endpoint=str(stored.get("email_endpoint") or self.settings.email_endpoint),
            control_server_url=str(stored.get("control_server_url") or self.settings.resolved_control_server_url()),
        )

    # --- lookup ------------------------------------------------------------

    def _merged_fields(self, tag: str, overrides: dict[str, Any]) -> dict[str, Any] | None:
        base = self._base.get(tag)
        override = overrides.get(tag)
        if base is None and not isinstance(override, dict):
            return None
        merged: dict[str, Any] = {"check_interval_ms": self.settings.default_check_interval_ms}
        merged.update(base or {})
        if isinstance(override, dict):
            merged.update(override)
        merged["tag"] = tag
        return merged

    def _build(self, tag: str, fields: dict[str, Any], globals_: GlobalSettings) -> EndpointConfig:
        fields = dict(fields)
        if not fields.get("sms_endpoint"):
            fields["sms_endpoint"] = globals_.sms_endpoint
        if not fields.get("email_endpoint"):
            fields["email_endpoint"] = globals_.email_endpoint
        try:
            return EndpointConfig(**fields)
        except ValidationError as e:
            raise EndpointConfigError(f"Invalid configuration for endpoint '{tag}': {e}") from e

    def get(self, tag: str) -> EndpointConfig:
        with self._lock:
            doc = self._load()
        fields = self._merged_fields(tag, doc["endpointOverrides"])
        if fields is None:
            raise EndpointNotFoundError(tag)
        return self._build(tag, fields, self._effective_globals(doc["globalSettings"]))

    def exists(self, tag: str) -> bool:
        if tag in self._base:
            return True
        with self._lock:
            return tag in self._load()["endpointOverrides"]

    def has_base(self, tag: str) -> bool:
        return tag in self._base

    def list_tags(self) -> list[str]:
        with self._lock:
            overrides = self._load()["endpointOverrides"]
        tags = list(self._base.keys())
        for tag in overrides:
            if tag not in self._base:
                tags.append(tag)
        return tags

    def get_all(self) -> dict[str, EndpointConfig]:
        configs: dict[str, EndpointConfig] = {}
        for tag in self.list_tags():
            try:
                configs[tag] = self.get(tag)
            except EndpointConfigError as e:
                logger.warning("Skipping invalid endpoint config", tag=tag, error=str(e))
        return configs

    # --- mutation ----------------------------------------------------------

    def upsert(self, tag: str, partial: dict[str, Any]) -> EndpointConfig:
        """Merge ``partial`` over the current override (and base); unspecified fields are kept."""
        tag = (tag or "").strip()
        if not tag:
            raise EndpointConfigError("Endpoint tag is required")

        updates = {k: v for k, v in (partial or {}).items() if k not in DERIVED_FIELDS and k != "tag"}
        unknown = sorted(k for k in updates if k not in EndpointConfig.model_fields)
        if unknown:
            logger.warning("Ignoring unknown endpoint fields", tag=tag, fields=unknown)
            for key in unknown:
                updates.pop(key)

        with self._lock:
            doc = self._load()
            overrides = doc["endpointOverrides"]
            globals_ = self._effective_globals(doc["globalSettings"])
            existing = self._merged_fields(tag, overrides)

            if existing is not None:
                current_url = str(existing.get("api_endpoint") or "").strip()
                new_url = updates.get("api_endpoint")
                if current_url and new_url is not None and str(new_url).strip() != current_url:
                    raise EndpointConfigError(f"api_endpoint of endpoint '{tag}' cannot be changed after creation")

            merged = dict(existing or {"check_interval_ms": self.settings.default_check_interval_ms})
            merged.update(updates)
            merged["tag"] = tag
            merged["sms_endpoint"] = globals_.sms_endpoint
            merged["email_endpoint"] = globals_.email_endpoint
            merged["updated_at"] = datetime.now(timezone.utc).isoformat()

            if not str(merged.get("api_endpoint") or "").strip():
                raise EndpointConfigError(f"api_endpoint is required for endpoint '{tag}'")

            config = self._build(tag, merged, globals_)
            overrides[tag] = config.model_dump(mode="json")
            self._save(doc)

        for warning in validate_mapping_paths(config):
            logger.warning("Suspicious mapping path", tag=tag, warning=warning)
        logger.info("Endpoint config saved", tag=tag, created=existing is None, fields=sorted(updates))
        return config

    def remove(self, tag: str) -> RemoveResult:
        with self._lock:
            doc = self._load()
            overrides = doc["endpointOverrides"]
            in_base = tag in self._base
            if not in_base and tag not in overrides:
                raise EndpointNotFoundError(tag)

            if not in_base:
                overrides.pop(tag, None)
                doc["activeEndpointTags"] = [t for t in doc["activeEndpointTags"] if t != tag]
                self._save(doc)
                logger.info("Endpoint deleted", tag=tag)
                return RemoveResult(tag=tag, deleted=True, message=f"Endpoint '{tag}' deleted successfully")

            if tag in overrides:
                overrides.pop(tag)
                self._save(doc)
            logger.info("Endpoint override cleared, reverted to base config", tag=tag)
            return RemoveResult(tag=tag, deleted=False, message=f"Endpoint '{tag}' reverted to base config")

    # --- active tags -------------------------------------------------------

    def active_tags(self) -> list[str]:
        with self._lock:
            return list(self._load()["activeEndpointTags"])

    def _require_known(self, tags: Iterable[str], overrides: dict[str, Any]) -> None:
        for tag in tags:
            if tag not in self._base and tag not in overrides:
                raise EndpointNotFoundError(tag)

    def set_active_tags(self, tags: Iterable[str]) -> list[str]:
        wanted: list[str] = []
        for tag in tags:
            if tag not in wanted:
                wanted.append(tag)
        with self._lock:
            doc = self._load()
            self._require_known(wanted, doc["endpointOverrides"])
            doc["activeEndpointTags"] = wanted
            self._save(doc)
        return wanted

    def add_active_tag(self, tag: str) -> list[str]:
        with self._lock:
            doc = self._load()
            self._require_known([tag], doc["endpointOverrides"])
            if tag not in doc["activeEndpointTags"]:
                doc["activeEndpointTags"].append(tag)
                self._save(doc)
            return list(doc["activeEndpointTags"])

    def remove_active_tag(self, tag: str) -> list[str]:
        with self._lock:
            doc = self._load()
            remaining = [t for t in doc["activeEndpointTags"] if t != tag]
            if remaining != doc["activeEndpointTags"]:
                doc["activeEndpointTags"] = remaining
                self._save(doc)
            return remaining

    def toggle_active_tag(self, tag: str) -> bool:
        """Flip the tag's active flag; returns whether it is active afterwards."""
        if tag in self.active_tags():
            self.remove_active_tag(tag)
            return False
        self.add_active_tag(tag)
        return True
