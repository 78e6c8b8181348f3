"""
CLI: watch / inspect / mutate the shared ledger.

Commands:
- summary: wait for the first snapshot, print totals + both histories, exit
- watch:   print totals every time the ledger changes (Ctrl-C to stop)
- add:     add an income/expense entry
- delete:  delete an entry by id

Env: see ledgersync.common.config.load_config (LEDGER_APP_ID, FIREBASE_CONFIG, ...).
Logs go to stderr as JSON lines; command output goes to stdout.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Sequence, TextIO

from ledgersync.common.config import load_config
from ledgersync.common.logging import init_structured_logging
from ledgersync.context import LedgerContext, build_context
from ledgersync.errors import LedgerError, ValidationError
from ledgersync.ledger.models import ENTRY_TYPES, LedgerEntry
from ledgersync.ledger.view import LedgerState


def format_usd(amount: Decimal) -> str:
    q = amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    sign = "-" if q < 0 else ""
    return f"{sign}${abs(q):,.2f}"


def _entry_line(e: LedgerEntry) -> str:
    return f"  {e.id}  {e.description:<32} {format_usd(e.amount):>14}"


def render_state(state: LedgerState, *, out: TextIO, history: bool = True) -> None:
    agg = state.aggregate
    out.write(f"Total Income    {format_usd(agg.total_income):>16}\n")
    out.write(f"Total Expenses  {format_usd(agg.total_expenses):>16}\n")
    out.write(f"Balance         {format_usd(agg.balance):>16}\n")
    if not history:
        return
    for title, items in (("Income History", agg.income_items), ("Expense History", agg.expense_items)):
        out.write(f"\n{title}\n")
        if not items:
            out.write("  No items yet.\n")
        for e in items:
            out.write(_entry_line(e) + "\n")


def state_to_json(state: LedgerState) -> str:
    return json.dumps(
        {
            "version": state.snapshot.version,
            **state.aggregate.to_dict(),
            "entries": [
                {
                    "id": e.id,
                    "description": e.description,
                    "amount": str(e.amount),
                    "type": e.type,
                    "createdAt": e.created_at.isoformat() if e.created_at else None,
                    "authorId": e.author_id,
                }
                for e in state.snapshot
            ],
        },
        sort_keys=True,
    )


def _parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="ledgersync", description="Real-time shared income/expense ledger.")
    sub = p.add_subparsers(dest="command", required=True)

    s = sub.add_parser("summary", help="Print totals and histories once.")
    s.add_argument("--json", action="store_true", help="Emit JSON instead of text.")

    w = sub.add_parser("watch", help="Print totals on every change.")
    w.add_argument("--json", action="store_true", help="Emit one JSON object per change.")
    w.add_argument("--limit", type=int, default=0, help="Stop after N snapshots (0 = run until interrupted).")

    a = sub.add_parser("add", help="Add an entry.")
    a.add_argument("type", choices=list(ENTRY_TYPES))
    a.add_argument("description")
    a.add_argument("amount", help="Positive amount, e.g. 150.50")

    d = sub.add_parser("delete", help="Delete an entry by id.")
    d.add_argument("entry_id")
    return p


async def _run(args: argparse.Namespace, ctx: LedgerContext, out: TextIO) -> int:
    if args.command in ("add", "delete"):
        gateway = ctx.gateway()
        ctx.identity.start()
        if args.command == "add":
            ref = await gateway.add(args.description, args.amount, args.type)
            out.write(f"{ref.id}\n")
        else:
            existed = await gateway.delete(args.entry_id)
            out.write(f"{'deleted' if existed else 'already absent'} {args.entry_id}\n")
        return 0

    async with ctx.view() as view:
        if args.command == "summary":
            state = await view.next_state()
            if args.json:
                out.write(state_to_json(state) + "\n")
            else:
                render_state(state, out=out)
            return 0

        seen = 0
        async for state in view.states():
            if args.json:
                out.write(state_to_json(state) + "\n")
            else:
                out.write(f"--- v{state.snapshot.version} ({len(state.snapshot)} entries)\n")
                render_state(state, out=out, history=False)
            out.flush()
            seen += 1
            if args.limit and seen >= args.limit:
                break
    return 0


def main(argv: Optional[Sequence[str]] = None, *, out: TextIO = sys.stdout, err: TextIO = sys.stderr) -> int:
    args = _parser().parse_args(argv)
    try:
        config = load_config()
        init_structured_logging(service="ledgersync", level=config.log_level, stream=err)
        ctx = build_context(config)
        return asyncio.run(_run(args, ctx, out))
    except ValidationError as e:
        err.write(f"invalid input: {e}\n")
        return 1
    except LedgerError as e:
        err.write(f"{type(e).__name__}: {e}\n")
        return 2
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
