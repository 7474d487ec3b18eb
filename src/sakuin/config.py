"""Runtime configuration for sakuin.

Environment Variables:
    SAKUIN_STORE_BACKEND: "memory" or "filesystem" (default: "memory")
    SAKUIN_STORE_BASE_DIR: Base directory for the filesystem backend
        (default: OS temp dir / sakuin_store)
    SAKUIN_OPERATION_TIMEOUT_SECONDS: Per-operation timeout (default: none)
    SAKUIN_HOST: HTTP bind address (default: "127.0.0.1")
    SAKUIN_PORT: HTTP port (default: 8080)
    SAKUIN_LOG_LEVEL: Root log level (default: "INFO")
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from sakuin.errors import ConfigError
from sakuin.identifiers import RandomSource
from sakuin.service import IndexService
from sakuin.storage.document_store import DocumentStore
from sakuin.storage.filesystem_store import (
    SAKUIN_STORE_BASE_DIR_ENV,
    FilesystemDocumentStore,
    FilesystemObjectStore,
    default_base_dir,
)
from sakuin.storage.memory_store import InMemoryDocumentStore, InMemoryObjectStore
from sakuin.storage.object_store import ObjectStore

SAKUIN_STORE_BACKEND_ENV = "SAKUIN_STORE_BACKEND"
SAKUIN_OPERATION_TIMEOUT_ENV = "SAKUIN_OPERATION_TIMEOUT_SECONDS"
SAKUIN_HOST_ENV = "SAKUIN_HOST"
SAKUIN_PORT_ENV = "SAKUIN_PORT"
SAKUIN_LOG_LEVEL_ENV = "SAKUIN_LOG_LEVEL"

VALID_BACKENDS = frozenset({"memory", "filesystem"})
VALID_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


def _get_env_str(environ: Mapping[str, str], key: str, default: str = "") -> str:
    """Get string from environment mapping."""
    return environ.get(key, default).strip()


def _get_env_float(environ: Mapping[str, str], key: str) -> float | None:
    """Get an optional positive float from environment mapping."""
    raw = _get_env_str(environ, key)
    if not raw:
        return None
    try:
        value = float(raw)
    except ValueError as e:
        raise ConfigError(f"{key} must be a number, got {raw!r}") from e
    if value <= 0:
        raise ConfigError(f"{key} must be positive, got {raw!r}")
    return value


def _get_env_int(environ: Mapping[str, str], key: str, default: int) -> int:
    """Get integer from environment mapping."""
    raw = _get_env_str(environ, key)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigError(f"{key} must be an integer, got {raw!r}") from e


@dataclass(frozen=True)
class Settings:
    """Effective sakuin settings."""

    store_backend: str = "memory"
    store_base_dir: Path | None = None
    operation_timeout: float | None = None
    host: str = "127.0.0.1"
    port: int = 8080
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.store_backend not in VALID_BACKENDS:
            raise ConfigError(
                f"Unknown store backend: {self.store_backend!r}. "
                f"Valid options: {sorted(VALID_BACKENDS)}"
            )
        if self.log_level not in VALID_LOG_LEVELS:
            raise ConfigError(
                f"Unknown log level: {self.log_level!r}. "
                f"Valid options: {sorted(VALID_LOG_LEVELS)}"
            )
        if not 0 < self.port < 65536:
            raise ConfigError(f"Port out of range: {self.port}")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Build settings from environment variables.

        Raises:
            ConfigError: If a variable holds an invalid value.
        """
        env = os.environ if environ is None else environ
        base_dir = _get_env_str(env, SAKUIN_STORE_BASE_DIR_ENV)

        return cls(
            store_backend=_get_env_str(env, SAKUIN_STORE_BACKEND_ENV, "memory").lower(),
            store_base_dir=Path(base_dir) if base_dir else None,
            operation_timeout=_get_env_float(env, SAKUIN_OPERATION_TIMEOUT_ENV),
            host=_get_env_str(env, SAKUIN_HOST_ENV, "127.0.0.1"),
            port=_get_env_int(env, SAKUIN_PORT_ENV, 8080),
            log_level=_get_env_str(env, SAKUIN_LOG_LEVEL_ENV, "INFO").upper(),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert settings to dictionary for JSON output."""
        return {
            "host": self.host,
            "log_level": self.log_level,
            "operation_timeout": self.operation_timeout,
            "port": self.port,
            "store_backend": self.store_backend,
            "store_base_dir": str(self.store_base_dir) if self.store_base_dir else None,
        }


def configure_logging(settings: Settings) -> None:
    """Configure the root logger at the configured level."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_stores(settings: Settings) -> tuple[ObjectStore, DocumentStore]:
    """Construct the configured object/document store pair."""
    if settings.store_backend == "filesystem":
        base_dir = settings.store_base_dir or default_base_dir()
        return FilesystemObjectStore(base_dir), FilesystemDocumentStore(base_dir)
    return InMemoryObjectStore(), InMemoryDocumentStore()


def build_service(settings: Settings, rand: RandomSource = os.urandom) -> IndexService:
    """Construct an IndexService wired to the configured stores."""
    object_store, document_store = build_stores(settings)
    return IndexService(
        object_store,
        document_store,
        rand,
        operation_timeout=settings.operation_timeout,
    )
