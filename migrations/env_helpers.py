"""Database URL helpers for Alembic migrations.

Kept apart from env.py so they can be imported (and tested) without an
active alembic context.
"""

from __future__ import annotations

import os
import re
from urllib.parse import quote_plus, urlsplit, urlunsplit

# key=value pairs; values may be single-quoted with backslash escapes
_DSN_PAIR = re.compile(r"(\w+)\s*=\s*('(?:[^'\\]|\\.)*'|\S*)")
_DSN_ESCAPE = re.compile(r"\\(.)")

_SQLALCHEMY_SCHEME = "postgresql+psycopg2"


def parse_libpq_dsn(dsn: str) -> dict[str, str]:
    """Parse a libpq key=value DSN into a dict."""
    params: dict[str, str] = {}
    for key, raw in _DSN_PAIR.findall(dsn):
        if raw.startswith("'") and raw.endswith("'") and len(raw) >= 2:
            raw = _DSN_ESCAPE.sub(r"\1", raw[1:-1])
        params[key] = raw
    return params


def libpq_dsn_to_url(dsn: str) -> str:
    """Convert a libpq key=value DSN to a SQLAlchemy URL.

    A host starting with "/" is a unix socket directory and is passed as
    the host query parameter:
        postgresql+psycopg2://USER:PASS@/DB?host=%2Fvar%2Frun%2Fpostgresql
    """
    params = parse_libpq_dsn(dsn)
    if not params.get("password") and os.environ.get("DB_PASSWORD"):
        params["password"] = os.environ["DB_PASSWORD"]

    credentials = quote_plus(params.get("user", ""))
    if params.get("password"):
        credentials += ":" + quote_plus(params["password"])
    dbname = quote_plus(params.get("dbname", ""))
    host = params.get("host", "localhost")

    if host.startswith("/"):
        return f"{_SQLALCHEMY_SCHEME}://{credentials}@/{dbname}?host={quote_plus(host)}"

    port = params.get("port", "5432")
    return f"{_SQLALCHEMY_SCHEME}://{credentials}@{host}:{port}/{dbname}"


def normalize_url(url: str) -> str:
    """Force the psycopg2 driver and inject DB_PASSWORD when the URL has none."""
    scheme, rest = url.split("://", 1)
    if scheme in ("postgres", "postgresql"):
        scheme = _SQLALCHEMY_SCHEME
    url = f"{scheme}://{rest}"

    db_password = os.environ.get("DB_PASSWORD")
    parts = urlsplit(url)
    if db_password and parts.username and not parts.password:
        netloc = f"{parts.username}:{quote_plus(db_password)}@{parts.hostname or ''}"
        if parts.port:
            netloc += f":{parts.port}"
        url = urlunsplit(parts._replace(netloc=netloc))
    return url


def get_database_url() -> str:
    """SQLAlchemy URL for DATABASE_URL, which may be a URL or a libpq DSN.

    Raises:
        RuntimeError: If DATABASE_URL is not set.
    """
    url = os.environ.get("DATABASE_URL")
    if not url:
        raise RuntimeError("DATABASE_URL is required to run migrations")
    if "://" in url:
        return normalize_url(url)
    return libpq_dsn_to_url(url)
