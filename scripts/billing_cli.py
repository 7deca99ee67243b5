#!/usr/bin/env python3
"""
Operator command line for the panel billing engine.

Every command loads the active configuration (billing_config), connects to
its database and runs one orchestrator call.  Exit status is 0 on success,
1 on a billing error and 2 on bad arguments.

Usage:
    python3 scripts/billing_cli.py [--config PATH] [--database-url URL] <command> ...

Examples:
    # Create tables and store the configured standard rates
    python3 scripts/billing_cli.py init-db

    # Register a panel billed from its intake day
    python3 scripts/billing_cli.py create-panel MAD-0042 MAD 2025-03-05

    # Record a removal and re-bill the month
    python3 scripts/billing_cli.py record-event <panel-id> REMOVAL 2025-03-09

    # Move a removal to another day (re-bills both months if it changes month)
    python3 scripts/billing_cli.py update-event <event-id> --date 2025-04-02

    # Open April and bill every panel in it
    python3 scripts/billing_cli.py next-month 2025-04

    # Change the 2026 standard rate and re-price January 2026
    python3 scripts/billing_cli.py set-rate 2026 39.50

    # Remove a panel for good (confirm with its code)
    python3 scripts/billing_cli.py delete-panel <panel-id> MAD-0042

    # Show a month
    python3 scripts/billing_cli.py summary 2025-03
"""

from __future__ import annotations

import argparse
import os
import sys
from decimal import Decimal, InvalidOperation
from pathlib import Path
from uuid import UUID

# Project root on sys.path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _decimal(value: str) -> Decimal:
    try:
        return Decimal(value)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"not a decimal amount: {value!r}") from None


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Panel billing: recalculation, month lifecycle and rates.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Configuration file (default: billing_config/sets/default.yaml).",
    )
    parser.add_argument(
        "--database-url",
        default=None,
        help="Override the configured database URL.",
    )
    parser.add_argument(
        "--actor-id",
        type=UUID,
        default=None,
        help="Actor UUID for audit (default: BILLING_ACTOR_ID env or the system actor).",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init-db", help="Create tables and seed configured rates.")
    commands.add_parser("seed-rates", help="Store configured rates for years without one.")

    set_rate = commands.add_parser(
        "set-rate", help="Set a year's standard rate and re-price its January."
    )
    set_rate.add_argument("year", type=int)
    set_rate.add_argument("amount", type=_decimal)
    set_rate.add_argument("--description", default=None)

    create_panel = commands.add_parser("create-panel", help="Register a panel at intake.")
    create_panel.add_argument("code")
    create_panel.add_argument("municipality")
    create_panel.add_argument("intake_date", help="YYYY-MM-DD local intake date.")
    create_panel.add_argument("--base-rate", type=_decimal, default=None)
    create_panel.add_argument("--location", default=None)

    record_event = commands.add_parser(
        "record-event", help="Record a panel event and re-bill its month."
    )
    record_event.add_argument("panel_id", type=UUID)
    record_event.add_argument("action")
    record_event.add_argument("date", help="YYYY-MM-DD local effective date.")
    record_event.add_argument("--amount", type=_decimal, default=None)
    record_event.add_argument("--rate", type=_decimal, default=None)
    record_event.add_argument("--kind", default=None, help="Intervention kind.")
    record_event.add_argument("--reason", default=None)
    record_event.add_argument("--idempotency-key", default=None)

    delete_event = commands.add_parser(
        "delete-event", help="Soft-delete an event and re-bill its month."
    )
    delete_event.add_argument("event_id", type=UUID)

    update_event = commands.add_parser(
        "update-event", help="Correct an event and re-bill every month it touches."
    )
    update_event.add_argument("event_id", type=UUID)
    update_event.add_argument("--date", default=None, help="New YYYY-MM-DD local date.")
    update_event.add_argument("--amount", type=_decimal, default=None)
    update_event.add_argument("--rate", type=_decimal, default=None)
    update_event.add_argument("--kind", default=None, help="Intervention kind.")
    update_event.add_argument("--reason", default=None)

    delete_panel = commands.add_parser(
        "delete-panel", help="Remove a panel with its events and billing records."
    )
    delete_panel.add_argument("panel_id", type=UUID)
    delete_panel.add_argument("confirm_code", help="The panel's code, as confirmation.")

    delete_month = commands.add_parser(
        "delete-month", help="Drop an open month's summary, records and events."
    )
    delete_month.add_argument("month_key")

    events = commands.add_parser("events", help="List a panel's event log.")
    events.add_argument("panel_id", type=UUID)
    events.add_argument("month_key", nargs="?", default=None)
    events.add_argument("--all", action="store_true", help="Include deleted events.")

    recalculate = commands.add_parser("recalculate", help="Recalculate one panel-month.")
    recalculate.add_argument("panel_id", type=UUID)
    recalculate.add_argument("month_key")

    regenerate = commands.add_parser("regenerate", help="Recalculate every panel for a month.")
    regenerate.add_argument("month_key")

    next_month = commands.add_parser("next-month", help="Open a month and bill every panel.")
    next_month.add_argument("month_key")

    resync = commands.add_parser(
        "resync", help="Re-derive a month's panels from the previous month."
    )
    resync.add_argument("month_key")

    commands.add_parser("close-month", help="Recompute and lock the previous month.")

    lock = commands.add_parser("lock", help="Lock (or --unlock) a month.")
    lock.add_argument("month_key")
    lock.add_argument("--unlock", action="store_true")

    summary = commands.add_parser("summary", help="Print a month's summary and records.")
    summary.add_argument("month_key")

    return parser


def _money(amount) -> str:
    from billing_kernel.domain.money import format_cents, to_cents

    return format_cents(to_cents(amount))


def _print_result(result) -> None:
    print(
        f"{result.month_key}  panel={result.panel_id}  days={result.billable_days}  "
        f"amount={_money(result.amount)}  status={result.closing_status.value}  "
        f"rate={_money(result.applied_rate)}"
    )
    for period in result.periods:
        print(f"    active {period.start_day:>2}..{period.end_day:>2}")
    for anomaly in result.anomalies:
        print(f"    note: {anomaly.kind} ({anomaly.action.value} on day {anomaly.day_of_month})")


def _print_regeneration(result) -> None:
    print(
        f"{result.month_key}: {result.status.value}  "
        f"{result.succeeded_count}/{result.total} panels  "
        f"recovered_on_retry={result.recovered_on_retry}  {result.duration_ms} ms"
    )
    for failure in result.failed:
        print(f"    FAILED {failure.panel_id}  {failure.error_code}: {failure.error_message}")
    if not result.summary_recomputed:
        print("    WARNING: month summary was not recomputed")


def _print_summary(summary) -> None:
    lock = "locked" if summary.is_locked else "open"
    print(f"{summary.month_key} ({lock})")
    print(f"  total            {_money(summary.total_amount)}")
    print(f"  panels           {summary.panel_count}")
    print(f"  fully billed     {summary.fully_billed_count}")
    print(f"  partial          {summary.partial_count}")
    print(f"  billable         {summary.billable_panel_count}")
    print(f"  zero or negative {summary.non_positive_count}")
    print(f"  events           {summary.total_events}")


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    # Lazy imports so we fail fast on args first
    from billing_batch.services import MonthRegenerator
    from billing_config import get_active_config
    from billing_kernel.db.engine import (
        create_tables,
        get_session_factory,
        init_engine_from_url,
        session_scope,
    )
    from billing_kernel.domain.clock import SystemClock
    from billing_kernel.domain.values import SYSTEM_ACTOR_ID
    from billing_kernel.exceptions import BillingKernelError
    from billing_kernel.selectors.billing_selector import BillingSelector
    from billing_kernel.selectors.event_selector import EventSelector
    from billing_kernel.services.rate_service import RateService
    from billing_services import BillingOrchestrator, MonthCloseOrchestrator

    try:
        config = get_active_config(args.config)
    except (OSError, KeyError, ValueError) as e:
        print(f"ERROR: Failed to load config: {e}", file=sys.stderr)
        return 1

    actor_id = args.actor_id
    if actor_id is None:
        env_actor = os.environ.get("BILLING_ACTOR_ID")
        actor_id = UUID(env_actor) if env_actor else SYSTEM_ACTOR_ID

    init_engine_from_url(args.database_url or config.database_url)
    session_factory = get_session_factory()
    clock = SystemClock(config.zone)
    orchestrator = BillingOrchestrator(session_factory, clock)
    month_close = MonthCloseOrchestrator(session_factory, clock)

    try:
        if args.command in ("init-db", "seed-rates"):
            if args.command == "init-db":
                create_tables()
            with session_scope(session_factory) as session:
                years = RateService(session).seed_rates(config.standard_rates, actor_id)
            print(f"Seeded rates for: {', '.join(map(str, years)) or '(none)'}")

        elif args.command == "set-rate":
            regenerator = MonthRegenerator.from_config(session_factory, config, clock)
            rate, result = regenerator.propagate_yearly_rate(
                args.year, args.amount, actor_id, args.description
            )
            print(f"Standard rate {rate.year}: {_money(rate.amount)}")
            _print_regeneration(result)

        elif args.command == "create-panel":
            panel, result = orchestrator.create_panel(
                args.code,
                args.municipality,
                args.intake_date,
                actor_id,
                base_rate=args.base_rate,
                location=args.location,
            )
            print(f"Panel {panel.code}: {panel.id}")
            _print_result(result)

        elif args.command == "record-event":
            event, result = orchestrator.record_event(
                args.panel_id,
                args.action.upper(),
                args.date,
                actor_id,
                amount=args.amount,
                rate=args.rate,
                intervention_kind=args.kind.upper() if args.kind else None,
                reason=args.reason,
                idempotency_key=args.idempotency_key,
            )
            print(f"Event {event.action.value} {event.effective_date_local}: {event.id}")
            _print_result(result)

        elif args.command == "delete-event":
            event, result = orchestrator.delete_event(args.event_id, actor_id)
            print(f"Deleted {event.action.value} {event.effective_date_local}: {event.id}")
            _print_result(result)

        elif args.command == "update-event":
            event, results = orchestrator.update_event(
                args.event_id,
                actor_id,
                effective_date_local=args.date,
                amount=args.amount,
                rate=args.rate,
                intervention_kind=args.kind.upper() if args.kind else None,
                reason=args.reason,
            )
            print(f"Updated {event.action.value} {event.effective_date_local}: {event.id}")
            for result in results:
                _print_result(result)

        elif args.command == "delete-panel":
            removal = orchestrator.delete_panel(args.panel_id, args.confirm_code, actor_id)
            print(
                f"Deleted panel {removal.code}: {removal.events_deleted} events, "
                f"{removal.records_deleted} billing records"
            )
            for month_key, ok in zip(removal.affected_months, removal.summaries_recomputed):
                print(f"    {month_key} summary {'recomputed' if ok else 'NOT recomputed'}")

        elif args.command == "delete-month":
            deletion = month_close.delete_month(args.month_key, actor_id)
            print(
                f"Deleted {deletion.month_key}: {deletion.records_deleted} billing records, "
                f"{deletion.events_deleted} events"
            )

        elif args.command == "recalculate":
            _print_result(orchestrator.recalculate_month(args.panel_id, args.month_key, actor_id))

        elif args.command in ("regenerate", "next-month", "resync"):
            regenerator = MonthRegenerator.from_config(session_factory, config, clock)
            if args.command == "regenerate":
                result = regenerator.regenerate_month(args.month_key, actor_id=actor_id)
            elif args.command == "next-month":
                result = regenerator.create_next_month(args.month_key, actor_id)
            else:
                result = regenerator.resync_month(args.month_key, actor_id)
            _print_regeneration(result)
            if result.failed:
                return 1

        elif args.command == "close-month":
            _print_summary(month_close.close_previous_month(actor_id))

        elif args.command == "lock":
            summary = month_close.toggle_lock(
                args.month_key, not args.unlock, actor_id
            )
            _print_summary(summary)

        elif args.command == "events":
            with session_scope(session_factory) as session:
                rows = EventSelector(session).list_events(
                    args.panel_id, args.month_key, include_deleted=args.all
                )
            for event in rows:
                deleted = "  (deleted)" if event.is_deleted else ""
                amount = f"  {_money(event.amount)}" if event.amount is not None else ""
                rate = f"  rate={_money(event.rate)}" if event.rate is not None else ""
                print(
                    f"{event.effective_date_local}  {event.action.value:<18}{amount}{rate}"
                    f"  {event.id}{deleted}"
                )

        elif args.command == "summary":
            with session_scope(session_factory) as session:
                billing = BillingSelector(session)
                summary = billing.get_summary(args.month_key)
                records = billing.records_for_month(args.month_key)
            if summary is None:
                print(f"No summary for {args.month_key}")
            else:
                _print_summary(summary)
            for record in records:
                print(
                    f"  {record.panel_code:<12} {record.municipality_label:<20} "
                    f"{record.billable_days:>2}d  {_money(record.amount):>12}  "
                    f"{record.closing_status.value}"
                )

    except BillingKernelError as e:
        print(f"ERROR [{e.code}]: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
