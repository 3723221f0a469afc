"""Unit test fixtures with mocked dependencies."""

import pytest
from unittest.mock import MagicMock


@pytest.fixture
def mock_db_settings():
    """Provide test database settings."""
    from infrastructure.settings import DatabaseSettings

    return DatabaseSettings(
        host="testhost",
        port=5432,
        database="testdb",
        username="testuser",
        password="testpass",
        graph_name="test_graph",
    )


@pytest.fixture
def loader_settings():
    """Provide loader settings independent of the environment."""
    from infrastructure.settings import LoaderSettings

    return LoaderSettings(
        default_batch_size=1000,
        staging_schema="age_loader",
        staging_table="staged_params",
        validate_before_load=True,
        continue_on_error=False,
        transaction_timeout_seconds=None,
        cleanup_staging=True,
    )


@pytest.fixture
def mock_psycopg2_connection():
    """Provide a mocked psycopg2 connection."""
    conn = MagicMock()
    conn.closed = False

    cursor = MagicMock()
    cursor.description = None
    cursor.fetchall.return_value = []
    cursor.fetchone.return_value = (1,)

    # Set up context manager
    cursor.__enter__ = MagicMock(return_value=cursor)
    cursor.__exit__ = MagicMock(return_value=False)
    conn.cursor.return_value = cursor

    return conn, cursor
