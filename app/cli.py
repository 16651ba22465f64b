"""CLI for the dispatch service: bootstrap the database, seed demo data, run sweeps."""

from __future__ import annotations

import argparse
import asyncio
import sys


async def cmd_init_db(args):
    """Create all tables."""
    from app.db.engine import create_all

    await create_all()
    print("Database tables created")


async def cmd_seed(args):
    """Insert a demo property, two handymen with coverage, and one open issue."""
    from app.db import crud
    from app.db.engine import async_session_factory, create_all
    from app.models import CoverageType, IssuePriority
    from app.schemas import DispatchConfigUpdate
    from app.services.dispatch_config import save_dispatch_config

    await create_all()
    async with async_session_factory() as db:
        prop = await crud.create_property(
            db, "Seaside Cottage", address="12 Harbor Rd", city="Austin", state="TX", zip_code="78701",
        )
        alice = await crud.create_handyman(
            db, "Alice Moreno", email="alice@example.com", phone="5125550101",
            specialties=["plumbing", "electrical"],
        )
        bob = await crud.create_handyman(
            db, "Bob Tran", email="bob@example.com", phone="5125550102", specialties=["general"],
        )
        await crud.add_coverage_area(db, alice.id, coverage_type=CoverageType.ZIP_CODE, value="78701", priority=1, is_primary=True)
        await crud.add_coverage_area(db, bob.id, coverage_type=CoverageType.CITY, value="Austin, TX", priority=1, is_primary=True)
        issue = await crud.create_issue(
            db, prop.id, "Leaking kitchen faucet", "Water dripping under the sink",
            priority=IssuePriority.HIGH,
        )
        if args.whatsapp_number:
            await save_dispatch_config(db, DispatchConfigUpdate(whatsapp_number=args.whatsapp_number))

    print(f"Property: {prop.name} (id={prop.id})")
    print(f"Handymen: {alice.name} (id={alice.id}), {bob.name} (id={bob.id})")
    print(f"Issue: {issue.title} (id={issue.id})")


async def cmd_sweep(args):
    """Run one follow-up / escalation pass and print what it did."""
    from app.db.engine import async_session_factory
    from app.services.messaging import build_message_gateway
    from app.services.orchestrator import DispatchOrchestrator

    orchestrator = DispatchOrchestrator(async_session_factory, build_message_gateway())
    report = await orchestrator.run_escalation_sweep()
    print(f"Follow-ups sent: {len(report.follow_ups)}")
    print(f"Escalated: {len(report.escalated)}")
    for assignment_id, error in report.errors.items():
        print(f"  ERROR {assignment_id}: {error}")
    if report.errors:
        sys.exit(1)


async def cmd_metrics(args):
    """Print per-handyman dispatch metrics."""
    from app.db.engine import async_session_factory
    from app.services.metrics import load_metrics

    async with async_session_factory() as db:
        rows = await load_metrics(db)

    if not rows:
        print("No dispatches yet")
        return
    print(f"{'Handyman':<24}{'Total':>7}{'Acc':>6}{'Dec':>6}{'Esc':>6}{'Pend':>6}{'Rate%':>7}{'Avg min':>9}")
    for m in rows:
        print(
            f"{(m.handyman_name or m.handyman_id)[:23]:<24}{m.total_dispatches:>7}{m.accepted:>6}"
            f"{m.declined:>6}{m.escalated:>6}{m.pending_count:>6}{m.acceptance_rate:>7}"
            f"{m.average_response_time:>9}"
        )


def main():
    parser = argparse.ArgumentParser(description="Handyman dispatch CLI")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("init-db", help="Create database tables")

    sd = subparsers.add_parser("seed", help="Insert demo data")
    sd.add_argument("--whatsapp-number", default="", help="Sender number to store in dispatch config (E.164)")

    subparsers.add_parser("sweep", help="Run one escalation sweep")
    subparsers.add_parser("metrics", help="Print handyman dispatch metrics")

    args = parser.parse_args()
    if not args.command:
        parser.print_help()
        sys.exit(1)

    if args.command == "init-db":
        asyncio.run(cmd_init_db(args))
    elif args.command == "seed":
        asyncio.run(cmd_seed(args))
    elif args.command == "sweep":
        asyncio.run(cmd_sweep(args))
    elif args.command == "metrics":
        asyncio.run(cmd_metrics(args))


if __name__ == "__main__":
    main()
