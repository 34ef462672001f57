"""Shared application context for reusable dependencies."""
from __future__ import annotations

from typing import Optional

import asyncpg

from .config import AppConfig

_pool: Optional[asyncpg.Pool] = None


async def create_pool(config: AppConfig) -> asyncpg.Pool:
    return await asyncpg.create_pool(
        min_size=1,
        max_size=10,
        command_timeout=10,
        timeout=config.db_connect_timeout,
        **config.db_config,
    )


def configure(*, pool: Optional[asyncpg.Pool]) -> None:
    """Register the connection pool used by repositories built after startup."""

    global _pool
    _pool = pool


def get_pool() -> asyncpg.Pool:
    if _pool is None:
        raise RuntimeError("Application context has not been configured yet: pool")
    return _pool
