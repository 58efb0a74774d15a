"""Capital call CLI.

Provides commands for:
- allocate: Preview how a call splits across investors
- create: Draft (or send) a capital call and save it to the ledger
- list: List capital calls on the ledger
- pay: Record an investor payment
- send / cancel: Change a call's status
- summary: Ledger-wide statistics
- export: Write a call's allocations to CSV
"""
from __future__ import annotations

import argparse
import logging
from typing import Any, Dict, List, Optional

import pandas as pd

from common.config_loader import ConfigError, load_all, load_yaml
from engine.allocation_engine import AllocationError, compute_allocations
from engine.capital_call_engine import CallRequest, CapitalCallError, draft_capital_call
from engine.explanation_engine import explain_allocations
from engine.payment_engine import PaymentDetails, PaymentError, call_summary, cancel_call, mark_sent, overdue_calls, record_payment
from investors.investor import FundOwnership, Investor
from policy.call_policy import CallPolicy
from reporting.allocation_table import allocations_frame, export_allocations_csv, level_breakdown
from storage.capital_call_store import CapitalCallStore
from structures.hierarchy import resolve_allocation_inputs
from structures.structure import Structure


def build_structures(records: List[Dict[str, Any]]) -> List[Structure]:
    """Build structures from configuration records."""
    out = []
    for s in records:
        level = s.get("hierarchy_level")
        out.append(
            Structure(
                id=s["id"],
                name=s.get("name", s["id"]),
                total_commitment=float(s.get("total_commitment", 0.0)),
                currency=s.get("currency", "USD"),
                hierarchy_level=int(level) if level is not None else None,
                parent_structure_id=s.get("parent_structure_id"),
            )
        )
    return out


def build_investors(records: List[Dict[str, Any]]) -> List[Investor]:
    """Build investors and their fund ownerships from configuration records."""
    out = []
    for i in records:
        ownerships = []
        for fo in i.get("fund_ownerships") or []:
            level = fo.get("hierarchy_level")
            ownerships.append(
                FundOwnership(
                    fund_id=fo["fund_id"],
                    fund_name=fo.get("fund_name", fo["fund_id"]),
                    commitment=float(fo.get("commitment", 0.0)),
                    ownership_percent=float(fo.get("ownership_percent", 0.0)),
                    called_capital=float(fo.get("called_capital", 0.0)),
                    hierarchy_level=int(level) if level is not None else None,
                )
            )
        out.append(Investor(id=i["id"], name=i["name"], type=i.get("type", "individual"), fund_ownerships=ownerships))
    return out


def open_store(args, policy: Dict[str, Any]) -> CapitalCallStore:
    return CapitalCallStore(args.ledger or CallPolicy(policy).ledger_path)


def configure_logging(level: Optional[str], policy: Dict[str, Any]) -> None:
    logging.basicConfig(
        level=(level or CallPolicy(policy).log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def print_table(df: pd.DataFrame) -> None:
    if df.empty:
        print("  (none)")
        return
    for line in df.to_string(index=False, float_format=lambda v: f"{v:,.2f}").splitlines():
        print("  " + line)


def cmd_allocate(args) -> int:
    """Handle allocate command: preview a call's allocations."""
    cfg = load_all(args.config, args.structures, args.investors)
    structures = build_structures(cfg.structures)
    investors = build_investors(cfg.investors)

    structure = next((s for s in structures if s.id == args.fund), None)
    if structure is None:
        print(f"Error: Fund {args.fund} not found")
        return 1

    positions = resolve_allocation_inputs(structure, structures, investors)
    try:
        allocations = compute_allocations(args.amount, structure, positions)
    except AllocationError as e:
        print(f"Error: {e}")
        return 1

    print(f"Capital Call Allocation: {structure.name} ${args.amount:,.2f} {structure.currency}")
    print("=" * 50)
    if not allocations:
        print("\nNo investors to allocate.")
        return 0

    if structure.is_hierarchy_master:
        print("\nBy Level:")
        print_table(level_breakdown(allocations))

    print("\nAllocations:")
    if args.explain:
        for line in explain_allocations(allocations, args.amount):
            print("  " + line)
    else:
        print_table(allocations_frame(allocations)[
            ["hierarchy_level", "investor_name", "commitment", "call_amount", "uncalled_capital"]
        ])

    print(f"\nTotal allocated: ${sum(a.call_amount for a in allocations):,.2f}")
    return 0


def cmd_create(args) -> int:
    """Handle create command: draft a capital call and save it."""
    cfg = load_all(args.config, args.structures, args.investors)
    store = open_store(args, cfg.policy)

    request = CallRequest(
        fund_id=args.fund,
        total_call_amount=args.amount,
        call_date=args.call_date,
        notice_period_days=args.notice_days,
        purpose=args.purpose or "",
        use_of_proceeds=args.use_of_proceeds or "",
        management_fee_included=args.management_fee is not None,
        management_fee_amount=args.management_fee or 0.0,
    )
    try:
        rec = draft_capital_call(
            request,
            build_structures(cfg.structures),
            build_investors(cfg.investors),
            cfg.policy,
            existing_calls=store.list_calls(),
            send_now=args.send,
        )
    except (CapitalCallError, AllocationError) as e:
        print(f"Error: {e}")
        return 1

    saved = store.save(rec.call)
    state = "sent to investors" if args.send else "saved as draft"
    print(f"Capital Call #{saved.call_number} ({saved.id}) {state}")
    print("=" * 50)

    print("\nSummary:")
    for k, v in rec.summary.items():
        if isinstance(v, dict):
            print(f"  {k}:")
            for kk, vv in v.items():
                print(f"    level {kk}: ${vv:,.2f}")
        elif isinstance(v, float):
            print(f"  {k}: ${v:,.2f}")
        else:
            print(f"  {k}: {v}")

    if rec.warnings:
        print("\nWarnings:")
        for w in rec.warnings:
            print(f"  - {w}")
    return 0


def cmd_list(args) -> int:
    """Handle list command."""
    cfg = load_all(args.config, args.structures, args.investors)
    store = open_store(args, cfg.policy)

    calls = store.by_fund(args.fund) if args.fund else store.list_calls()
    if args.status == "Overdue":
        # Overdue is derived from the due date, never stored
        calls = overdue_calls(calls)
    elif args.status:
        calls = [c for c in calls if c.status == args.status]

    rows = [
        {
            "id": c.id,
            "fund": c.fund_name,
            "number": c.call_number,
            "status": c.status,
            "amount": c.total_call_amount,
            "outstanding": c.total_outstanding_amount,
            "due": c.due_date,
        }
        for c in calls
    ]
    print(f"Capital Calls ({len(rows)})")
    print("=" * 50)
    print_table(pd.DataFrame(rows))
    return 0


def cmd_pay(args) -> int:
    """Handle pay command: record an investor payment."""
    cfg = load_all(args.config, args.structures, args.investors)
    store = open_store(args, cfg.policy)
    call = store.get(args.call)
    if call is None:
        print(f"Error: Capital call {args.call} not found")
        return 1

    details = PaymentDetails(payment_method=args.method, transaction_reference=args.reference)
    try:
        updated = record_payment(
            call, args.investor, args.amount, details, CallPolicy(cfg.policy).tolerance, structure_id=args.structure,
        )
    except PaymentError as e:
        print(f"Payment error: {e}")
        return 1

    store.update(updated)
    print(f"Recorded ${args.amount:,.2f} from {args.investor} on call #{updated.call_number}")
    print(f"  Status: {updated.status}")
    print(f"  Outstanding: ${updated.total_outstanding_amount:,.2f}")
    return 0


def cmd_send(args) -> int:
    """Handle send command."""
    cfg = load_all(args.config, args.structures, args.investors)
    store = open_store(args, cfg.policy)
    call = store.get(args.call)
    if call is None:
        print(f"Error: Capital call {args.call} not found")
        return 1
    try:
        updated = mark_sent(call)
    except PaymentError as e:
        print(f"Error: {e}")
        return 1
    store.update(updated)
    print(f"Capital Call #{updated.call_number} sent to {len(updated.investor_allocations)} investors")
    return 0


def cmd_cancel(args) -> int:
    """Handle cancel command."""
    cfg = load_all(args.config, args.structures, args.investors)
    store = open_store(args, cfg.policy)
    call = store.get(args.call)
    if call is None:
        print(f"Error: Capital call {args.call} not found")
        return 1
    try:
        updated = cancel_call(call, args.reason)
    except PaymentError as e:
        print(f"Error: {e}")
        return 1
    store.update(updated)
    print(f"Capital Call #{updated.call_number} cancelled: {args.reason}")
    return 0


def cmd_summary(args) -> int:
    """Handle summary command: ledger-wide statistics."""
    cfg = load_all(args.config, args.structures, args.investors)
    store = open_store(args, cfg.policy)
    stats = call_summary(store.list_calls())

    print("Capital Call Summary")
    print("=" * 50)
    for k, v in stats.items():
        if isinstance(v, float):
            print(f"  {k}: ${v:,.2f}")
        else:
            print(f"  {k}: {v}")
    return 0


def cmd_export(args) -> int:
    """Handle export command: write allocations to CSV."""
    cfg = load_all(args.config, args.structures, args.investors)
    store = open_store(args, cfg.policy)
    call = store.get(args.call)
    if call is None:
        print(f"Error: Capital call {args.call} not found")
        return 1
    path = export_allocations_csv(call.investor_allocations, args.out)
    print(f"Exported {len(call.investor_allocations)} allocations to {path}")
    return 0


def main():
    """Main entry point."""
    p = argparse.ArgumentParser(
        prog="cli.main",
        description="Capital call CLI: pro-rata allocation and call ledger",
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    # Common arguments for all commands
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", default="config/call_policy.yaml", help="Policy config file")
    common.add_argument("--structures", default="config/structures.yaml", help="Structures file")
    common.add_argument("--investors", default="config/investors.yaml", help="Investors file")
    common.add_argument("--ledger", default=None, help="Capital call ledger file (overrides policy)")
    common.add_argument("--log-level", default=None, help="Logging level (overrides policy)")

    # Allocate command
    alloc = sub.add_parser("allocate", parents=[common], help="Preview a call's allocations")
    alloc.add_argument("--fund", required=True, help="Structure id")
    alloc.add_argument("--amount", type=float, required=True, help="Total call amount")
    alloc.add_argument("--explain", action="store_true", help="Explain each allocation")
    alloc.set_defaults(func=cmd_allocate)

    # Create command
    create = sub.add_parser("create", parents=[common], help="Create a capital call")
    create.add_argument("--fund", required=True, help="Structure id")
    create.add_argument("--amount", type=float, required=True, help="Total call amount")
    create.add_argument("--call-date", default=None, help="Call date (YYYY-MM-DD, default today)")
    create.add_argument("--notice-days", type=int, default=None, help="Notice period in days")
    create.add_argument("--purpose", default=None, help="Purpose of the call")
    create.add_argument("--use-of-proceeds", default=None, help="Use of proceeds")
    create.add_argument("--management-fee", type=float, default=None, help="Management fee included in the call")
    create.add_argument("--send", action="store_true", help="Send now instead of saving as draft")
    create.set_defaults(func=cmd_create)

    # List command
    ls = sub.add_parser("list", parents=[common], help="List capital calls")
    ls.add_argument("--fund", default=None, help="Filter by structure id")
    ls.add_argument(
        "--status",
        choices=["Draft", "Sent", "Partially Paid", "Fully Paid", "Overdue", "Cancelled"],
        default=None,
        help="Filter by status",
    )
    ls.set_defaults(func=cmd_list)

    # Pay command
    pay = sub.add_parser("pay", parents=[common], help="Record an investor payment")
    pay.add_argument("--call", required=True, help="Capital call id")
    pay.add_argument("--investor", required=True, help="Investor id")
    pay.add_argument("--structure", default=None, help="Structure id, for investors holding at several levels")
    pay.add_argument("--amount", type=float, required=True, help="Amount paid")
    pay.add_argument("--method", default=None, help="Payment method")
    pay.add_argument("--reference", default=None, help="Transaction reference")
    pay.set_defaults(func=cmd_pay)

    # Send command
    send = sub.add_parser("send", parents=[common], help="Send a draft capital call")
    send.add_argument("--call", required=True, help="Capital call id")
    send.set_defaults(func=cmd_send)

    # Cancel command
    cancel = sub.add_parser("cancel", parents=[common], help="Cancel a capital call")
    cancel.add_argument("--call", required=True, help="Capital call id")
    cancel.add_argument("--reason", required=True, help="Cancellation reason")
    cancel.set_defaults(func=cmd_cancel)

    # Summary command
    summ = sub.add_parser("summary", parents=[common], help="Ledger statistics")
    summ.set_defaults(func=cmd_summary)

    # Export command
    exp = sub.add_parser("export", parents=[common], help="Export a call's allocations to CSV")
    exp.add_argument("--call", required=True, help="Capital call id")
    exp.add_argument("--out", required=True, help="Output CSV path")
    exp.set_defaults(func=cmd_export)

    args = p.parse_args()
    try:
        configure_logging(args.log_level, load_yaml(args.config))
        code = args.func(args)
    except ConfigError as e:
        print(f"Config error: {e}")
        code = 1
    raise SystemExit(code)


if __name__ == "__main__":
    main()
