"""taskchain.cli

Command line interface entry point for taskchain.

Design constraints:
- argparse-based.
- Lazy imports: do not import heavy dependencies at parse time.
- One runtime per invocation; every command that shows state reloads it first.
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from taskchain.core.config import Config
    from taskchain.runtime import Runtime
    from taskchain.sync.lifecycle import MutationResult

EPILOG = "The ledger is the source of truth. This is only a view of it."


@dataclass(frozen=True)
class CliContext:
    repo_root: Path
    dev: bool = False


def _repo_root_from_cwd() -> Path:
    return Path.cwd()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="taskchain",
        description="Task list reconciled from an on-chain event log.",
        epilog=EPILOG,
    )
    parser.add_argument("--version", action="store_true", help="Print version and exit.")
    parser.add_argument(
        "--dev",
        action="store_true",
        help=(
            "Use an in-process ledger instead of the configured node. It starts empty on every run "
            "and is gone when the process exits, so it is mostly useful with `api`."
        ),
    )

    sub = parser.add_subparsers(dest="command")

    sub.add_parser("tasks", help="Reload and list tasks")

    p_events = sub.add_parser("events", help="Reload and show the event feed, newest first")
    p_events.add_argument("--limit", type=int, default=None, help="Number of entries (default: config).")

    p_create = sub.add_parser("create", help="Create a task")
    p_create.add_argument("description")

    p_update = sub.add_parser("update", help="Change a task's description")
    p_update.add_argument("id", type=int)
    p_update.add_argument("description")

    p_complete = sub.add_parser("complete", help="Mark a task completed")
    p_complete.add_argument("id", type=int)

    sub.add_parser("account", help="Show the connected account, network and balance")

    p_api = sub.add_parser("api", help="Start the HTTP API")
    p_api.add_argument("--host", default=None)
    p_api.add_argument("--port", type=int, default=None)

    return parser


def _print_version() -> None:
    from taskchain import __version__

    print(f"taskchain v{__version__}")


def _load_config(ctx: CliContext) -> Config:
    from taskchain.core.config import Config
    from taskchain.core.log import setup_logging

    config = Config.load(ctx.repo_root)
    setup_logging(config.logging)
    return config


def _build(ctx: CliContext, config: Config) -> Runtime:
    from taskchain.runtime import build_dev_runtime, build_runtime

    return build_dev_runtime(config) if ctx.dev else build_runtime(config)


def _with_runtime(ctx: CliContext, fn: Callable[[Runtime], Awaitable[int]]) -> int:
    from taskchain.core.exceptions import TaskchainError

    async def _main(runtime: Runtime) -> int:
        try:
            return await fn(runtime)
        finally:
            await runtime.aclose()

    try:
        runtime = _build(ctx, _load_config(ctx))
        return asyncio.run(_main(runtime))
    except TaskchainError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1


def _print_result(runtime: Runtime, result: MutationResult) -> int:
    if result.ok:
        task_id = result.target_id
        if task_id is None and result.tx_hash:
            task_id = runtime.store.snapshot.created_by(result.tx_hash)
        label = f"#{task_id}" if task_id is not None else "(id pending reload)"
        print(f"{result.kind}: task {label} confirmed in {result.tx_hash}")
        if not result.refreshed:
            print(f"warning: {runtime.store.last_error}", file=sys.stderr)
        return 0

    retry = "yes" if result.safe_to_retry else "no (a transaction may already be on-chain)"
    print(f"error: {runtime.store.last_error or result.message}", file=sys.stderr)
    print(f"safe to retry: {retry}", file=sys.stderr)
    if result.tx_hash:
        print(f"transaction: {runtime.config.network.tx_url(result.tx_hash)}", file=sys.stderr)
    return 2 if result.status == "rejected" else 1


def _cmd_tasks(ctx: CliContext, args: argparse.Namespace) -> int:
    async def run(runtime: Runtime) -> int:
        snap = await runtime.reload()
        if not snap.tasks:
            print("No tasks yet.")
            return 0
        for t in snap.tasks:
            mark = "x" if t.completed else " "
            print(f"#{t.id:<4} [{mark}] {t.description}")
        return 0

    return _with_runtime(ctx, run)


def _cmd_events(ctx: CliContext, args: argparse.Namespace) -> int:
    from taskchain.core.types import event_description

    async def run(runtime: Runtime) -> int:
        snap = await runtime.reload()
        limit = args.limit if args.limit is not None else runtime.config.reconcile.event_feed_limit
        feed = snap.recent_events(limit)
        if not feed:
            print("No events yet.")
            return 0
        for ev in feed:
            line = f"block {ev.block_number:<10} {ev.kind:<14} task #{ev.task_id}"
            description = event_description(ev)
            if description is not None:
                line += f"  {description}"
            print(line)
            print(f"    {runtime.config.network.tx_url(ev.transaction_hash)}")
        return 0

    return _with_runtime(ctx, run)


def _cmd_create(ctx: CliContext, args: argparse.Namespace) -> int:
    async def run(runtime: Runtime) -> int:
        await runtime.connect(request=True)
        return _print_result(runtime, await runtime.create(args.description))

    return _with_runtime(ctx, run)


def _cmd_update(ctx: CliContext, args: argparse.Namespace) -> int:
    async def run(runtime: Runtime) -> int:
        await runtime.connect(request=True)
        return _print_result(runtime, await runtime.update(args.id, args.description))

    return _with_runtime(ctx, run)


def _cmd_complete(ctx: CliContext, args: argparse.Namespace) -> int:
    async def run(runtime: Runtime) -> int:
        await runtime.connect(request=True)
        return _print_result(runtime, await runtime.complete(args.id))

    return _with_runtime(ctx, run)


def _cmd_account(ctx: CliContext, args: argparse.Namespace) -> int:
    from eth_utils import from_wei

    from taskchain.ledger.signer import short_address
    from taskchain.runtime import require_session

    async def run(runtime: Runtime) -> int:
        network = runtime.config.network
        if not ctx.dev:
            await runtime.verify_network()
        session = await require_session(runtime)
        balance = from_wei(await runtime.ledger.get_balance(session.account), "ether")
        print(f"account:  {short_address(session.account)} ({session.account})")
        print(f"network:  {network.name} (chain {network.chain_id})")
        print(f"balance:  {balance:.4f} {network.currency_symbol}")
        print(f"contract: {short_address(runtime.config.contract.address)} {network.address_url(runtime.config.contract.address)}")
        return 0

    return _with_runtime(ctx, run)


def _cmd_api(ctx: CliContext, args: argparse.Namespace) -> int:
    from taskchain.core.exceptions import ConfigError

    try:
        config = _load_config(ctx)
    except ConfigError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    host = args.host or config.api.host
    port = args.port or config.api.port
    if ctx.dev:
        os.environ["TASKCHAIN_DEV"] = "1"

    import uvicorn

    from api.main import create_app

    try:
        app = create_app(config)
    except RuntimeError as e:
        print(str(e), file=sys.stderr)
        return 1

    uvicorn.run(app, host=host, port=port, reload=False)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        _print_version()
        return 0

    if not args.command:
        parser.print_help()
        return 2

    ctx = CliContext(repo_root=_repo_root_from_cwd(), dev=bool(args.dev))

    dispatch: dict[str, Callable[[CliContext, argparse.Namespace], int]] = {
        "tasks": _cmd_tasks,
        "events": _cmd_events,
        "create": _cmd_create,
        "update": _cmd_update,
        "complete": _cmd_complete,
        "account": _cmd_account,
        "api": _cmd_api,
    }

    fn = dispatch.get(str(args.command))
    if fn is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 2

    return int(fn(ctx, args))


if __name__ == "__main__":
    raise SystemExit(main())
