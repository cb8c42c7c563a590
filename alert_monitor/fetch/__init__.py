"""Upstream API access."""

from .data_source import ApiRequest, DataSource, FetchResult, HttpDataSource, probe_fetch, probe_map

__all__ = ["ApiRequest", "DataSource", "FetchResult", "HttpDataSource", "probe_fetch", "probe_map"]
