"""Batch limits and chunk sizes sourced from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Dict


@dataclass(frozen=True)
class LimitDefinition:
    env_var: str
    default: int


_LIMIT_DEFINITIONS: Dict[str, LimitDefinition] = {
    "max_items_per_operation": LimitDefinition("BATCH_MAX_ITEMS_PER_OPERATION", 1000),
    "max_concurrent_operations": LimitDefinition("BATCH_MAX_CONCURRENT_OPERATIONS", 3),
    "max_email_recipients": LimitDefinition("BATCH_MAX_EMAIL_RECIPIENTS", 500),
    "max_file_size_mb": LimitDefinition("BATCH_MAX_FILE_SIZE_MB", 50),
    "create_chunk_size": LimitDefinition("BATCH_CREATE_CHUNK_SIZE", 10),
    "message_chunk_size": LimitDefinition("BATCH_MESSAGE_CHUNK_SIZE", 50),
    "update_chunk_size": LimitDefinition("BATCH_UPDATE_CHUNK_SIZE", 25),
    "import_preview_rows": LimitDefinition("BATCH_IMPORT_PREVIEW_ROWS", 10),
}


@dataclass(frozen=True)
class BatchLimits:
    max_items_per_operation: int = 1000
    max_concurrent_operations: int = 3
    max_email_recipients: int = 500
    max_file_size_mb: int = 50
    create_chunk_size: int = 10
    message_chunk_size: int = 50
    update_chunk_size: int = 25
    import_preview_rows: int = 10

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024


def _normalize_int(value: str | None, default: int) -> int:
    """Return a positive int from an environment-style value, else the default."""
    if value is None:
        return default
    try:
        parsed = int(value.strip())
    except ValueError:
        return default
    return parsed if parsed > 0 else default


@lru_cache(maxsize=None)
def get_batch_limits() -> BatchLimits:
    """Return the cached limits sourced from the environment."""
    values = {
        key: _normalize_int(os.getenv(definition.env_var), definition.default)
        for key, definition in _LIMIT_DEFINITIONS.items()
    }
    return BatchLimits(**values)


def refresh_batch_limits_cache() -> None:
    """Invalidate cached limits (useful for tests)."""
    get_batch_limits.cache_clear()
