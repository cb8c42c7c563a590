"""Endpoint configuration registry."""

from .endpoint_registry import EndpointRegistry, validate_endpoint, validate_mapping_paths
from .models import AuthType, EndpointConfig, GlobalSettings, HttpMethod, RemoveResult

__all__ = [
    "AuthType",
    "EndpointConfig",
    "EndpointRegistry",
    "GlobalSettings",
    "HttpMethod",
    "RemoveResult",
    "validate_endpoint",
    "validate_mapping_paths",
]
