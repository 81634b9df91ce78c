"""Settlement Command Line Interface.

Operational entry points for the scheduled jobs:
- Drain the ticket payment queue
- Run the weekly bank-transfer batch
- Retry transfers deferred for pending funds
- Settle a single ticket by id

Usage:
    python -m settlement_engine.settlement.cli process-queue
    python -m settlement_engine.settlement.cli batch-transfer
    python -m settlement_engine.settlement.cli retry-pending
    python -m settlement_engine.settlement.cli settle-ticket --ticket-id X
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import logging
import sys
from typing import Any, Awaitable, Callable
from uuid import UUID

from settlement_engine.config import configure_logging, get_settings
from settlement_engine.database import dispose_db, get_session
from settlement_engine.settlement.config import SettlementConfig
from settlement_engine.settlement.engine import SettlementEngine, get_providers

logger = logging.getLogger(__name__)


def parse_uuid(s: str) -> UUID:
    """Parse UUID string."""
    return UUID(s)


class SettlementCli:
    """Settlement Command Line Interface."""

    def __init__(self) -> None:
        self.parser = self._build_parser()

    def _build_parser(self) -> argparse.ArgumentParser:
        """Build argument parser."""
        parser = argparse.ArgumentParser(
            prog="python -m settlement_engine.settlement.cli",
            description="Ticket payment settlement tools",
        )
        parser.add_argument(
            "--log-level",
            type=str,
            default=None,
            help="Logging level (default: LOG_LEVEL env or INFO)",
        )
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        subparsers.add_parser(
            "process-queue",
            help="Process every ready message on the ticket payment queue",
        )
        subparsers.add_parser(
            "batch-transfer",
            help="Batch pending bank transfers and submit the payout batch",
        )
        subparsers.add_parser(
            "retry-pending",
            help="Retry transfers deferred for pending funds",
        )
        settle = subparsers.add_parser(
            "settle-ticket",
            help="Settle payment for one ticket, bypassing the queue",
        )
        settle.add_argument(
            "--ticket-id",
            type=parse_uuid,
            required=True,
            help="Ticket to settle",
        )
        return parser

    def run(self, args: list[str] | None = None) -> int:
        """Run the CLI with given arguments."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 1

        configure_logging(parsed.log_level)

        handlers: dict[str, Callable[[SettlementEngine], Awaitable[Any]]] = {
            "process-queue": lambda engine: engine.process_queue(),
            "batch-transfer": lambda engine: engine.run_batch_transfer(),
            "retry-pending": lambda engine: engine.retry_pending_transfers(),
            "settle-ticket": lambda engine: engine.process_payment(parsed.ticket_id),
        }

        handler = handlers.get(parsed.command)
        if handler is None:
            print(f"Unknown command: {parsed.command}", file=sys.stderr)
            return 1

        try:
            result = asyncio.run(self._execute(handler))
        except Exception as exc:
            logger.exception("%s failed", parsed.command)
            print(json.dumps({"success": False, "error": str(exc)}))
            return 1

        print(json.dumps({"success": True, **dataclasses.asdict(result)}, default=str))
        return 0

    async def _execute(self, handler: Callable[[SettlementEngine], Awaitable[Any]]) -> Any:
        config = SettlementConfig.from_settings(get_settings())
        try:
            async with get_session() as session:
                engine = SettlementEngine(
                    session, providers=get_providers(), config=config
                )
                return await handler(engine)
        finally:
            await dispose_db()


def main() -> int:
    """CLI entry point."""
    cli = SettlementCli()
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())
