"""
Operator commands for ParcelHub.

Examples:
    python -m parcelhub.cli init-db
    python -m parcelhub.cli issue-token ops-1 --role admin
    python -m parcelhub.cli reconcile --limit 50
    python -m parcelhub.cli bookings list --status failed
    python -m parcelhub.cli bookings requeue <order-id>
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from datetime import timedelta
from typing import Optional, Sequence

from parcelhub.core.config import get_settings
from parcelhub.core.constants import BookingStatus
from parcelhub.core.container import ApplicationContainer
from parcelhub.core.logging import configure_logging
from parcelhub.core.security import create_access_token
from parcelhub.domain.bookings import BookingError, BookingQueue
from parcelhub.domain.orders import OrderError, OrderOrchestrator
from parcelhub.infrastructure.database.session import dispose_engine, get_session_factory, init_db


async def _init_db() -> int:
    await init_db()
    await dispose_engine()
    print("database tables created")
    return 0


async def _reconcile(limit: Optional[int]) -> int:
    container = ApplicationContainer.build(get_settings())
    try:
        summary = await container.reconciler.run_once(limit)
    finally:
        await container.shutdown()
        await dispose_engine()
    print(json.dumps(summary.as_dict(), indent=2))
    return 1 if summary.failed else 0


async def _list_bookings(status: str, limit: int) -> int:
    booking_status = None if status == "all" else BookingStatus(status)
    async with get_session_factory()() as session:
        tasks = await BookingQueue.with_session(session).list_tasks(booking_status, limit=limit)
    await dispose_engine()
    for task in tasks:
        print(
            f"{task.order_id}  {task.partner:<18} {task.status.value:<12} "
            f"attempts={task.attempts}  {task.last_error or ''}"
        )
    print(f"{len(tasks)} task(s)")
    return 0


async def _requeue(order_id: str) -> int:
    container = ApplicationContainer.build(get_settings())
    try:
        async with get_session_factory()() as session:
            orchestrator = OrderOrchestrator.with_session(session, quoter=container.quoter)
            task = await orchestrator.requeue_booking(order_id)
    except (BookingError, OrderError) as exc:
        print(f"requeue failed: {exc}", file=sys.stderr)
        return 1
    finally:
        await container.shutdown()
        await dispose_engine()
    print(f"booking for {task.order_id} is {task.status.value}; the running worker picks it up on its next poll")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="parcelhub", description="ParcelHub operator commands")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init-db", help="Create all database tables")

    token_parser = subparsers.add_parser("issue-token", help="Issue a bearer token for a user id")
    token_parser.add_argument("user_id")
    token_parser.add_argument("--role", choices=["user", "admin"], default="user")
    token_parser.add_argument("--minutes", type=int, default=None, help="Lifetime in minutes")

    reconcile_parser = subparsers.add_parser("reconcile", help="Run one tracking reconciliation pass")
    reconcile_parser.add_argument("--limit", type=int, default=None)

    bookings_parser = subparsers.add_parser("bookings", help="Inspect or requeue shipment bookings")
    bookings_sub = bookings_parser.add_subparsers(dest="action", required=True)
    list_parser = bookings_sub.add_parser("list", help="List booking tasks")
    list_parser.add_argument(
        "--status",
        choices=[status.value for status in BookingStatus] + ["all"],
        default=BookingStatus.FAILED.value,
    )
    list_parser.add_argument("--limit", type=int, default=50)
    requeue_parser = bookings_sub.add_parser("requeue", help="Requeue a failed booking")
    requeue_parser.add_argument("order_id")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(get_settings())

    if args.command == "issue-token":
        expires = timedelta(minutes=args.minutes) if args.minutes else None
        print(create_access_token(args.user_id, args.role, expires))
        return 0
    if args.command == "init-db":
        return asyncio.run(_init_db())
    if args.command == "reconcile":
        return asyncio.run(_reconcile(args.limit))
    if args.action == "list":
        return asyncio.run(_list_bookings(args.status, args.limit))
    return asyncio.run(_requeue(args.order_id))


if __name__ == "__main__":
    sys.exit(main())
