# File: flows/etl_flows.py

from datetime import date
from typing import Optional

from prefect import flow, task

from data_sources.rdbms import get_engine
from notifications.telegram import send_telegram_message
from warehouse.etl import run_full_load


def summarize(report) -> dict:
    return {
        "total": report.total,
        "accepted": report.accepted,
        "rejected": report.rejected,
        "reasons": {f"{error}:{field}": n for (error, field), n in report.reasons().items()},
        "table_counts": dict(report.table_counts),
    }


def _notify(message: str) -> bool:
    try:
        send_telegram_message(message)
    except Exception as exc:
        # a missing or failing chat must never fail the load itself
        print(f"⚠ Telegram notification skipped: {exc}")
        return False
    return True


# ─────────────────────────────────────────────────────────────────────────────
@task(name="notify_start", retries=0, retry_delay_seconds=0, log_prints=True)
def notify_start(batch_id: int) -> bool:
    """Send a “starting” message to Telegram before the full load."""
    return _notify(f"🚀 Starting star-schema load for batch {batch_id}")


# ─────────────────────────────────────────────────────────────────────────────
@task(name="full_load_task", retries=1, retry_delay_seconds=300, log_prints=True)
def full_load(database_url: Optional[str] = None) -> dict:
    """
    Rebuild the insurance star schema from stg_insurance.
    The load runs in one transaction, so a retry always starts from a clean state.
    """
    report = run_full_load(get_engine(database_url))
    return summarize(report)


# ─────────────────────────────────────────────────────────────────────────────
@task(name="notify_success", retries=0, retry_delay_seconds=0, log_prints=True)
def notify_success(batch_id: int, summary: dict) -> bool:
    lines = [
        f"✅ Star-schema load succeeded for batch {batch_id}",
        f"accepted {summary['accepted']} / rejected {summary['rejected']} of {summary['total']} rows",
    ]
    lines += [f"  {reason}: {n}" for reason, n in sorted(summary["reasons"].items())]
    return _notify("\n".join(lines))


# ─────────────────────────────────────────────────────────────────────────────
@task(name="notify_failure", retries=0, retry_delay_seconds=0, log_prints=True)
def notify_failure(batch_id: int, error_msg: str) -> bool:
    return _notify(f"❌ Star-schema load FAILED for batch {batch_id}\nError: {error_msg}")


# ─────────────────────────────────────────────────────────────────────────────
@flow(name="star_schema_flow", log_prints=True)
def star_schema_flow(execution_date: Optional[date] = None, database_url: Optional[str] = None) -> dict:
    """
    1) Compute batch_id from execution_date (YYYYMMDD).
    2) Send “starting” message to Telegram.
    3) Run the full star-schema rebuild.
    4) On success: send a summary with accepted/rejected counts.
    5) On exception: send “failure” message and re‐raise.
    """
    execution_date = execution_date or date.today()
    batch_id = int(execution_date.strftime("%Y%m%d"))

    notify_start(batch_id)

    try:
        summary = full_load(database_url)
    except Exception as e:
        notify_failure(batch_id, str(e))
        raise

    notify_success(batch_id, summary)
    print(f"Star-schema load completed for batch {batch_id}: "
          f"{summary['accepted']} facts, {summary['rejected']} rejected")
    return summary


# ─────────────────────────────────────────────────────────────────────────────
if __name__ == "__main__":
    star_schema_flow()
