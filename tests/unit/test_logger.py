import logging

from app.logging.logger import Log, _ContextFormatter


def _record(message: str, **extra: object) -> logging.LogRecord:
    record = logging.LogRecord("receipts", logging.INFO, __file__, 1, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestContextFormatter:
    def test_plain_message_has_no_context(self) -> None:
        formatter = _ContextFormatter("%(message)s")
        assert formatter.format(_record("Worker started")) == "Worker started"

    def test_extra_fields_are_appended_sorted(self) -> None:
        formatter = _ContextFormatter("%(message)s")
        line = formatter.format(_record("Job failed", job_id="job-1", attempts=2))
        assert line == "Job failed | attempts=2 job_id=job-1"

    def test_private_attributes_are_hidden(self) -> None:
        formatter = _ContextFormatter("%(message)s")
        assert formatter.format(_record("Ping", _internal=True)) == "Ping"


class TestLog:
    def test_configure_sets_level_and_single_handler(self) -> None:
        Log.configure("debug")
        Log.configure("warning")
        assert Log._logger.level == logging.WARNING
        assert len(Log._logger.handlers) == 1

    def test_kwargs_reach_the_record(self, caplog) -> None:
        Log.configure("info")
        with caplog.at_level(logging.INFO, logger="receipts"):
            Log.info("Job completed", job_id="job-7")
        assert caplog.records[-1].job_id == "job-7"
