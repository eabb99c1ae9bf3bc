from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
from psycopg.types.json import Jsonb

from app.database.exceptions import StorageError
from app.database.models import (
    ExtractedFields,
    ExtractionResult,
    JobStatus,
    NewReceiptJob,
    ReceiptJobRecord,
)
from app.database.repositories.job_repository import JobRepository

_PATCH_TARGET = "app.database.repositories.job_repository.get_connection"
CLAIMED_AT = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


def _make_row(**overrides: object) -> dict:
    row = {
        "id": "0b6f6f5e-1f55-4c1e-9a57-4a0c7a3c2f10",
        "user_id": "user-1",
        "status": "PENDING",
        "attempts": 0,
        "original_name": "receipt.jpg",
        "mime_type": "image/jpeg",
        "file_size": 2048,
        "storage_path": "receipts/user-1/OTHER/receipt.jpg",
        "ocr_text": "Corner Market\nTOTAL 5.00",
        "ocr_confidence": 0.9,
        "extracted_fields": None,
        "extraction_confidence": None,
        "last_error": None,
        "claimed_at": None,
        "processed_at": None,
        "discarded_at": None,
        "created_at": datetime(2024, 3, 15, tzinfo=timezone.utc),
        "updated_at": datetime(2024, 3, 15, tzinfo=timezone.utc),
    }
    row.update(overrides)
    return row


def _mock_connection(mock_get_conn: MagicMock) -> tuple[MagicMock, MagicMock]:
    """Wire up a mock connection + cursor and return (mock_conn, mock_cursor)."""
    mock_cursor = MagicMock()
    mock_conn = MagicMock()
    mock_conn.cursor.return_value.__enter__ = MagicMock(return_value=mock_cursor)
    mock_conn.cursor.return_value.__exit__ = MagicMock(return_value=False)
    mock_get_conn.return_value.__enter__ = MagicMock(return_value=mock_conn)
    mock_get_conn.return_value.__exit__ = MagicMock(return_value=False)
    return mock_conn, mock_cursor


def _executed_sql(mock_cursor: MagicMock) -> str:
    return " ".join(mock_cursor.execute.call_args.args[0].split())


class TestRequeueStaleJobs:
    @patch(_PATCH_TARGET)
    def test_single_conditional_update(self, mock_get_conn: MagicMock) -> None:
        mock_conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchall.return_value = [_make_row(attempts=1)]

        jobs = JobRepository().requeue_stale_jobs(60_000)

        sql = _executed_sql(mock_cursor)
        assert sql.startswith("UPDATE receipt_jobs")
        assert "attempts = attempts + 1" in sql
        assert "claimed_at = NULL" in sql
        assert "WHERE status = 'PROCESSING'" in sql
        assert mock_cursor.execute.call_args.args[1] == (60_000,)
        mock_conn.commit.assert_called_once()
        assert jobs[0].attempts == 1
        assert jobs[0].status is JobStatus.PENDING


class TestFindPendingJobs:
    @patch(_PATCH_TARGET)
    def test_orders_oldest_first_and_limits(self, mock_get_conn: MagicMock) -> None:
        _conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchall.return_value = [_make_row()]

        jobs = JobRepository().find_pending_jobs(4)

        sql = _executed_sql(mock_cursor)
        assert "status = 'PENDING'" in sql
        assert "discarded_at IS NULL" in sql
        assert "ORDER BY created_at, id" in sql
        assert mock_cursor.execute.call_args.args[1] == (4,)
        assert isinstance(jobs[0], ReceiptJobRecord)
        assert jobs[0].ocr_confidence == 0.9


class TestClaimJob:
    @patch(_PATCH_TARGET)
    def test_returns_claimed_job(self, mock_get_conn: MagicMock) -> None:
        _conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchone.return_value = _make_row(status="PROCESSING")

        job = JobRepository().claim_job("job-1")

        assert job is not None
        assert job.status is JobStatus.PROCESSING
        sql = _executed_sql(mock_cursor)
        assert "SET status = 'PROCESSING', claimed_at = NOW()" in sql
        assert "AND status = 'PENDING'" in sql

    @patch(_PATCH_TARGET)
    def test_returns_none_when_lost(self, mock_get_conn: MagicMock) -> None:
        _conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchone.return_value = None

        assert JobRepository().claim_job("job-1") is None


class TestMarkCompleted:
    @patch(_PATCH_TARGET)
    def test_persists_fields_as_jsonb(self, mock_get_conn: MagicMock) -> None:
        _conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.rowcount = 1
        result = ExtractionResult(fields=ExtractedFields(vendor="Shop", total_amount=5.0), confidence=0.6)

        assert JobRepository().mark_completed("job-1", CLAIMED_AT, result) is True

        params = mock_cursor.execute.call_args.args[1]
        assert isinstance(params[0], Jsonb)
        assert params[0].obj["vendor"] == "Shop"
        assert params[1:] == (0.6, "job-1", CLAIMED_AT)
        sql = _executed_sql(mock_cursor)
        assert "AND status = 'PROCESSING'" in sql
        assert "AND claimed_at = %s" in sql

    @patch(_PATCH_TARGET)
    def test_returns_false_when_claim_no_longer_holds(self, mock_get_conn: MagicMock) -> None:
        _conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.rowcount = 0
        result = ExtractionResult(fields=ExtractedFields(vendor="Shop"))

        assert JobRepository().mark_completed("job-1", CLAIMED_AT, result) is False


class TestMarkFailed:
    @patch(_PATCH_TARGET)
    def test_updates_status_and_error(self, mock_get_conn: MagicMock) -> None:
        mock_conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.rowcount = 1

        assert JobRepository().mark_failed("job-1", CLAIMED_AT, "No receipt details") is True

        assert mock_cursor.execute.call_args.args[1] == ("No receipt details", "job-1", CLAIMED_AT)
        sql = _executed_sql(mock_cursor)
        assert "AND claimed_at = %s" in sql
        assert "SET status = 'FAILED'" in sql
        assert "attempts" not in sql
        mock_conn.commit.assert_called_once()


class TestCreate:
    @patch(_PATCH_TARGET)
    def test_inserts_pending_job(self, mock_get_conn: MagicMock) -> None:
        _conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchone.return_value = _make_row()
        new_job = NewReceiptJob(
            user_id="user-1",
            original_name="receipt.jpg",
            mime_type="image/jpeg",
            file_size=2048,
            storage_path="receipts/user-1/OTHER/receipt.jpg",
        )

        job = JobRepository().create(new_job)

        assert job.status is JobStatus.PENDING
        assert mock_cursor.execute.call_args.args[1][0] == "user-1"

    @patch(_PATCH_TARGET)
    def test_raises_storage_error_when_no_row(self, mock_get_conn: MagicMock) -> None:
        _conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchone.return_value = None
        new_job = NewReceiptJob("u", "r.jpg", "image/jpeg", 1, "receipts/u/OTHER/r.jpg")

        with pytest.raises(StorageError):
            JobRepository().create(new_job)


class TestFindById:
    @patch(_PATCH_TARGET)
    def test_maps_extracted_fields(self, mock_get_conn: MagicMock) -> None:
        _conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchone.return_value = _make_row(
            status="COMPLETED",
            extracted_fields={"vendor": "Shop", "total_amount": 5.0, "date": "2024-03-15"},
            extraction_confidence=0.8,
        )

        job = JobRepository().find_by_id("job-1")

        assert job is not None
        assert job.extracted_fields == ExtractedFields(vendor="Shop", total_amount=5.0, date="2024-03-15")

    @patch(_PATCH_TARGET)
    def test_scopes_to_user(self, mock_get_conn: MagicMock) -> None:
        _conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchone.return_value = None

        assert JobRepository().find_by_id("job-1", user_id="someone-else") is None
        assert mock_cursor.execute.call_args.args[1] == ("job-1", "someone-else")


class TestDiscard:
    @patch(_PATCH_TARGET)
    def test_discard_is_owner_scoped(self, mock_get_conn: MagicMock) -> None:
        _conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.rowcount = 1

        assert JobRepository().discard("job-1", "user-1") is True
        assert mock_cursor.execute.call_args.args[1] == ("job-1", "user-1")
        assert "discarded_at IS NULL" in _executed_sql(mock_cursor)


class TestStorageErrors:
    @patch(_PATCH_TARGET)
    def test_connection_errors_propagate_as_storage_error(self, mock_get_conn: MagicMock) -> None:
        mock_get_conn.side_effect = StorageError("pool exhausted")

        with pytest.raises(StorageError):
            JobRepository().find_pending_jobs(1)
