"""Tests for the Prefect flow and its tasks."""

from datetime import date

import pytest

from flows import etl_flows
from warehouse.errors import DanglingReferenceError


@pytest.fixture
def sent(monkeypatch):
    messages = []
    monkeypatch.setattr(etl_flows, "send_telegram_message", messages.append)
    return messages


@pytest.fixture
def broken_telegram(monkeypatch):
    def fail(text):
        raise RuntimeError("TELEGRAM_BOT_TOKEN or TELEGRAM_CHAT_ID is not set")

    monkeypatch.setattr(etl_flows, "send_telegram_message", fail)


def test_notify_start(sent) -> None:
    assert etl_flows.notify_start.fn(20250102) is True
    assert sent == ["🚀 Starting star-schema load for batch 20250102"]


def test_notification_errors_do_not_fail_the_task(broken_telegram, capsys) -> None:
    assert etl_flows.notify_failure.fn(1, "boom") is False
    assert "Telegram notification skipped" in capsys.readouterr().out


def test_notify_success_lists_rejection_reasons(sent) -> None:
    summary = {"total": 12, "accepted": 10, "rejected": 2,
               "reasons": {"NullFieldError:sex": 1, "OutOfRangeError:age": 1}}
    etl_flows.notify_success.fn(7, summary)
    assert "accepted 10 / rejected 2 of 12 rows" in sent[0]
    assert "OutOfRangeError:age: 1" in sent[0]


def test_full_load_task_returns_summary(stage, sample_rows, bad_rows, monkeypatch) -> None:
    engine = stage(sample_rows + bad_rows)
    monkeypatch.setattr(etl_flows, "get_engine", lambda url=None: engine)

    summary = etl_flows.full_load.fn()

    assert (summary["total"], summary["accepted"], summary["rejected"]) == (14, 10, 4)
    assert summary["reasons"]["NullFieldError:sex"] == 1
    assert summary["table_counts"]["fact_premiums"] == 10


class TestStarSchemaFlow:
    """Flow body with the tasks replaced by plain functions."""

    @pytest.fixture
    def calls(self, monkeypatch):
        calls = []
        monkeypatch.setattr(etl_flows, "notify_start", lambda b: calls.append(("start", b)))
        monkeypatch.setattr(etl_flows, "notify_success", lambda b, s: calls.append(("success", b)))
        monkeypatch.setattr(etl_flows, "notify_failure", lambda b, e: calls.append(("failure", b, e)))
        return calls

    def test_success_path(self, calls, monkeypatch) -> None:
        summary = {"total": 1, "accepted": 1, "rejected": 0, "reasons": {}, "table_counts": {}}
        monkeypatch.setattr(etl_flows, "full_load", lambda url=None: summary)

        result = etl_flows.star_schema_flow.fn(execution_date=date(2025, 3, 4))

        assert result == summary
        assert calls == [("start", 20250304), ("success", 20250304)]

    def test_failure_is_reported_and_reraised(self, calls, monkeypatch) -> None:
        def fail(url=None):
            raise DanglingReferenceError("fact_premiums references missing dimension rows")

        monkeypatch.setattr(etl_flows, "full_load", fail)

        with pytest.raises(DanglingReferenceError):
            etl_flows.star_schema_flow.fn(execution_date=date(2025, 3, 4))

        assert calls[0] == ("start", 20250304)
        assert calls[1][:2] == ("failure", 20250304)
        assert "missing dimension rows" in calls[1][2]
