from psycopg.rows import dict_row

from app.database.connection import get_connection
from app.database.models import JobStatus, ReceiptStats

# Discarded jobs are kept for audit but never counted; every aggregate below
# must carry the discarded_at IS NULL filter.
_COUNTS_BY_STATUS_SQL = """
    SELECT status, COUNT(*) AS job_count
    FROM receipt_jobs
    WHERE user_id = %s
      AND discarded_at IS NULL
    GROUP BY status
"""

_COMPLETED_TOTALS_SQL = """
    SELECT
        COALESCE(SUM((extracted_fields ->> 'total_amount')::numeric), 0) AS total_amount,
        COALESCE(SUM((extracted_fields ->> 'tax_amount')::numeric), 0) AS tax_amount,
        AVG(extraction_confidence) AS average_confidence
    FROM receipt_jobs
    WHERE user_id = %s
      AND status = 'COMPLETED'
      AND discarded_at IS NULL
"""

STATS_QUERIES = (_COUNTS_BY_STATUS_SQL, _COMPLETED_TOTALS_SQL)


class ReceiptStatsRepository:
    """Aggregate queries behind the receipt dashboard widgets."""

    def get_stats(self, user_id: str) -> ReceiptStats:
        """Return job counts by status and totals over completed receipts."""
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(_COUNTS_BY_STATUS_SQL, (user_id,))
                count_rows = cur.fetchall()
                cur.execute(_COMPLETED_TOTALS_SQL, (user_id,))
                totals_row = cur.fetchone()

        counts = {status.value: 0 for status in JobStatus if status is not JobStatus.DISCARDED}
        for row in count_rows:
            counts[row["status"]] = int(row["job_count"])

        stats = ReceiptStats(counts_by_status=counts)
        if totals_row is not None:
            stats.completed_total_amount = float(totals_row["total_amount"] or 0)
            stats.completed_tax_amount = float(totals_row["tax_amount"] or 0)
            if totals_row["average_confidence"] is not None:
                stats.average_confidence = float(totals_row["average_confidence"])
        return stats
