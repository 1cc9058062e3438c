# backoffice/cli/sync_metrics.py
"""
Push the month's dashboard numbers to the accounting webhook.

Meant for cron:
    python -m backoffice.cli.sync_metrics                # current month
    python -m backoffice.cli.sync_metrics --month 2026-09
Exit code 1 when the event was not delivered.
"""
from __future__ import annotations
import argparse
import json
import logging
import sys

from backoffice.logging_config import setup_logging
from backoffice.services import config
from backoffice.services.periods import resolve_month
from backoffice.services.metrics import sync_snapshot
from backoffice.services.webhook import AUTO_SYNC_USER, metrics_payload, sync_month_metrics
from backoffice.storage import clients_store, payments_store
from backoffice.storage.db import get_conn

logger = logging.getLogger("backoffice.cli.sync_metrics")


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="Send dashboard_metrics to the accounting system")
    ap.add_argument("--month", default=None, help="YYYY-MM (default: current month)")
    ap.add_argument("--dry-run", action="store_true", help="Print the payload instead of sending it")
    args = ap.parse_args(argv)

    setup_logging(config.LOG_LEVEL, config.LOG_FORMAT)
    y, m = resolve_month(args.month)

    conn = get_conn()
    try:
        clients = clients_store.list_clients(conn, include_inactive=True)
        payments = payments_store.list_payments(conn)
    finally:
        conn.close()

    if args.dry_run:
        payload = metrics_payload(sync_snapshot(clients, payments, y, m), f"{y:04d}-{m:02d}", AUTO_SYNC_USER)
        print(json.dumps(payload, indent=2, default=str))
        return 0

    result = sync_month_metrics(clients, payments, y, m, user_id=AUTO_SYNC_USER)
    logger.info("dashboard_metrics %04d-%02d delivered=%s", y, m, result["delivered"])
    return 0 if result["delivered"] else 1


if __name__ == "__main__":
    sys.exit(main())
