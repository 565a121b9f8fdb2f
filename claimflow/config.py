"""Centralized configuration from environment variables with defaults."""

import os
from dataclasses import dataclass


def _str(key: str, default: str) -> str:
    raw = os.environ.get(key)
    if raw is None or not raw.strip():
        return default
    return raw.strip()


def _float(key: str, default: float) -> float:
    raw = os.environ.get(key)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _int(key: str, default: int) -> int:
    raw = os.environ.get(key)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


DEFAULT_API_URL = "http://localhost:3000"
DEFAULT_API_TIMEOUT = 10.0
DEFAULT_MAX_UPLOAD_FILES = 20
DEFAULT_UPLOAD_CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the claims client.

    Attributes:
        api_url: Base URL of the claims API
        api_timeout: Per-request timeout in seconds
        max_upload_files: Maximum number of files one upload pipeline accepts
        upload_chunk_size: Bytes per chunk when streaming a file transfer
        log_level: Root log level name for ``configure_logging``
        log_format: "human" or "json"
    """
    api_url: str = DEFAULT_API_URL
    api_timeout: float = DEFAULT_API_TIMEOUT
    max_upload_files: int = DEFAULT_MAX_UPLOAD_FILES
    upload_chunk_size: int = DEFAULT_UPLOAD_CHUNK_SIZE
    log_level: str = "INFO"
    log_format: str = "human"


def get_settings() -> Settings:
    """Read settings from CLAIMFLOW_* environment variables.

    Invalid numeric values fall back to their defaults.
    """
    max_files = _int("CLAIMFLOW_MAX_UPLOAD_FILES", DEFAULT_MAX_UPLOAD_FILES)
    chunk_size = _int("CLAIMFLOW_UPLOAD_CHUNK_SIZE", DEFAULT_UPLOAD_CHUNK_SIZE)
    log_format = _str("CLAIMFLOW_LOG_FORMAT", "human").lower()
    return Settings(
        api_url=_str("CLAIMFLOW_API_URL", DEFAULT_API_URL).rstrip("/"),
        api_timeout=_float("CLAIMFLOW_API_TIMEOUT", DEFAULT_API_TIMEOUT),
        max_upload_files=max_files if max_files > 0 else DEFAULT_MAX_UPLOAD_FILES,
        upload_chunk_size=chunk_size if chunk_size > 0 else DEFAULT_UPLOAD_CHUNK_SIZE,
        log_level=_str("CLAIMFLOW_LOG_LEVEL", "INFO").upper(),
        log_format=log_format if log_format in ("human", "json") else "human",
    )


__all__ = [
    "Settings",
    "get_settings",
]
