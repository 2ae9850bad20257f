"""Tests for migrations/env_helpers.py URL conversion."""

from __future__ import annotations

import os
import sys
from unittest.mock import patch

import pytest

# Make migrations importable without an alembic context
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from migrations.env_helpers import _get_database_url  # noqa: E402


class TestGetDatabaseUrl:
    def test_driver_url_passthrough(self):
        with patch.dict(os.environ, {"DATABASE_URL": "postgresql+psycopg2://u:p@h/db"}):
            assert _get_database_url() == "postgresql+psycopg2://u:p@h/db"

    def test_postgres_scheme_normalized(self):
        with patch.dict(os.environ, {"DATABASE_URL": "postgres://u:p@h:5432/db"}):
            assert _get_database_url() == "postgresql+psycopg2://u:p@h:5432/db"

    def test_postgresql_scheme_gets_driver(self):
        with patch.dict(os.environ, {"DATABASE_URL": "postgresql://u:p@h/db"}):
            assert _get_database_url() == "postgresql+psycopg2://u:p@h/db"

    def test_missing_raises(self):
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(RuntimeError, match="DATABASE_URL is required"):
                _get_database_url()
