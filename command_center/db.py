from __future__ import annotations

import logging
from urllib.parse import urlparse, urlunparse, parse_qsl, urlencode

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncEngine

from command_center.settings import get_settings

logger = logging.getLogger(__name__)

ASYNC_DRIVERS = {
    "sqlite://": "sqlite+aiosqlite://",
    "postgres://": "postgresql+asyncpg://",
    "postgresql://": "postgresql+asyncpg://",
    "postgresql+psycopg2://": "postgresql+asyncpg://",
}

# libpq options asyncpg does not understand.
_DROPPED_PG_PARAMS = {"sslmode", "channel_binding", "ssl"}

_LOCAL_HOSTS = {"localhost", "127.0.0.1", "::1"}


def _with_async_driver(url: str) -> str:
    for prefix, replacement in ASYNC_DRIVERS.items():
        if url.startswith(prefix):
            return replacement + url[len(prefix) :]
    return url


def _asyncpg_query(url: str) -> str:
    parsed = urlparse(url)
    params = parse_qsl(parsed.query, keep_blank_values=True)
    wants_ssl = any(key == "sslmode" for key, _ in params)
    clean = [(key, value) for key, value in params if key not in _DROPPED_PG_PARAMS]
    if wants_ssl:
        clean.append(("ssl", "true"))
    return urlunparse(parsed._replace(query=urlencode(clean)))


def normalize_database_url(database_url: str) -> str:
    """Map a configured URL onto the async driver used for its backend."""
    url = _with_async_driver(str(database_url or "").strip())
    if not url.startswith("postgresql+asyncpg://"):
        return url
    try:
        return _asyncpg_query(url)
    except ValueError:
        logger.debug("Could not rewrite query of database URL; using it as given.")
        return url


def is_sqlite_url(database_url: str) -> bool:
    return normalize_database_url(database_url).startswith("sqlite")


def _engine_options(db_url: str) -> dict:
    if is_sqlite_url(db_url):
        return {"future": True}
    options: dict = {"pool_pre_ping": True, "future": True, "pool_size": 20, "max_overflow": 10}
    try:
        host = urlparse(db_url).hostname or ""
    except ValueError:
        logger.debug("Failed to parse database URL for SSL hint.")
        host = ""
    if host and host not in _LOCAL_HOSTS:
        options["connect_args"] = {"ssl": True}
    return options


_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker | None = None


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        db_url = normalize_database_url(get_settings().database_url)
        _engine = create_async_engine(db_url, **_engine_options(db_url))
        logger.info("Database engine created for %s", urlparse(db_url).scheme)
    return _engine


def get_sessionmaker() -> async_sessionmaker:
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(get_engine(), expire_on_commit=False)
    return _session_factory


async def dispose_engine() -> None:
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None
