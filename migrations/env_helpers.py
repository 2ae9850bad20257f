"""Database URL helpers for Alembic migrations.

Kept apart from env.py so they can be tested without an alembic context.
"""

from __future__ import annotations

import os

_DRIVER_PREFIX = "postgresql+psycopg2://"


def _get_database_url() -> str:
    """DATABASE_URL rewritten for SQLAlchemy's psycopg2 dialect.

    Accepts the ``postgres://`` and ``postgresql://`` spellings used by
    hosting providers and libpq.
    """
    url = os.environ.get("DATABASE_URL")
    if not url:
        raise RuntimeError("DATABASE_URL is required to run migrations")
    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            return _DRIVER_PREFIX + url[len(prefix):]
    return url
