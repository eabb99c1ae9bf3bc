import os
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import psycopg
import pytest

from app.config.settings import Settings
from app.database.connection import close_pool, get_connection, init_pool

SCHEMA_PATH = Path(__file__).resolve().parents[2] / "app" / "database" / "schema.sql"


def _test_settings() -> Settings:
    os.environ.setdefault("DB_DATABASE", "receipts_test")
    return Settings()


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    return _test_settings()


@pytest.fixture(scope="session")
def integration_pool(test_settings: Settings) -> Generator[None, None, None]:
    try:
        init_pool(test_settings)
        with get_connection() as conn:
            conn.execute(SCHEMA_PATH.read_text(encoding="utf-8"))
            conn.commit()
    except Exception as e:
        close_pool()
        pytest.skip(
            f"PostgreSQL test DB not available: {e}. "
            "Set DB_* env to point at a disposable database"
        )
    try:
        yield
    finally:
        close_pool()


@pytest.fixture
def db_conn(integration_pool: None) -> Generator[psycopg.Connection[Any], None, None]:
    with get_connection() as conn:
        yield conn


@pytest.fixture(autouse=True)
def clean_jobs(integration_pool: None) -> Generator[None, None, None]:
    """Every test starts and ends with empty job and extraction cache tables."""
    _truncate()
    yield
    _truncate()


def _truncate() -> None:
    with get_connection() as conn:
        conn.execute("DELETE FROM receipt_jobs")
        conn.execute("DELETE FROM receipt_extraction_cache")
        conn.commit()


@pytest.fixture
def seed_job(db_conn: psycopg.Connection[Any]) -> Callable[..., str]:
    """Insert a receipt_jobs row directly and return its id."""

    def _seed(
        *,
        user_id: str = "user-1",
        status: str = "PENDING",
        attempts: int = 0,
        ocr_text: str | None = "Corner Market\nTOTAL $12.50",
        claimed_seconds_ago: int | None = None,
        created_seconds_ago: int = 0,
    ) -> str:
        with db_conn.cursor() as cur:
            cur.execute(
                """
                INSERT INTO receipt_jobs
                    (user_id, status, attempts, original_name, mime_type,
                     file_size, storage_path, ocr_text, claimed_at, created_at)
                VALUES (
                    %s, %s, %s, 'receipt.jpg', 'image/jpeg', 1024,
                    %s, %s,
                    CASE WHEN %s::int IS NULL THEN NULL
                         ELSE NOW() - %s::int * INTERVAL '1 second' END,
                    NOW() - %s::int * INTERVAL '1 second'
                )
                RETURNING id
                """,
                (
                    user_id,
                    status,
                    attempts,
                    f"receipts/{user_id}/OTHER/receipt.jpg",
                    ocr_text,
                    claimed_seconds_ago,
                    claimed_seconds_ago,
                    created_seconds_ago,
                ),
            )
            row = cur.fetchone()
            assert row is not None
        db_conn.commit()
        return str(row[0])

    return _seed


@pytest.fixture
def fetch_job_row(integration_pool: None) -> Callable[[str], tuple[Any, ...]]:
    def _fetch(job_id: str) -> tuple[Any, ...]:
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT status, attempts, claimed_at, last_error, extracted_fields "
                    "FROM receipt_jobs WHERE id = %s",
                    (job_id,),
                )
                row = cur.fetchone()
        assert row is not None
        return row

    return _fetch
