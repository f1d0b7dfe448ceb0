"""Command line entry point.

Usage:
    switchlyswap quote ETH.ETH XLM.XLM 0.5 [--to GABC...]
    switchlyswap rate ETH.ETH XLM.XLM
    switchlyswap watch 0xabc... --from-chain ETH --to-chain XLM --to GABC...
    switchlyswap serve

Environment variables are read through Settings (see .env.example).
"""

import argparse
import asyncio
import json
import logging
import sys
from decimal import Decimal, InvalidOperation
from typing import Optional

from switchlyswap.config import get_settings
from switchlyswap.exceptions import ProbeTransientError, SwitchlyError
from switchlyswap.routing.switchly import SwitchlyQuoteProvider
from switchlyswap.settlement.correlator import SettlementCorrelator, SettlementSnapshot
from switchlyswap.settlement.state import SettlementState

logger = logging.getLogger(__name__)


def _print_json(data: dict) -> None:
    print(json.dumps(data, indent=2, default=str))


async def cmd_quote(args: argparse.Namespace) -> int:
    provider = SwitchlyQuoteProvider()
    try:
        try:
            amount = Decimal(args.amount)
        except InvalidOperation:
            print(f"Invalid amount: {args.amount}", file=sys.stderr)
            return 2

        quote = await provider.get_quote(args.from_asset, args.to_asset, amount)
        if quote is None:
            print(f"No quote for {args.from_asset} -> {args.to_asset}", file=sys.stderr)
            return 1

        result = quote.to_dict()
        if args.destination:
            instructions = await provider.get_swap_instructions(quote, args.destination)
            result["instructions"] = instructions.to_dict()

        _print_json(result)
        return 0
    finally:
        await provider.close()


async def cmd_rate(args: argparse.Namespace) -> int:
    provider = SwitchlyQuoteProvider()
    try:
        rate = await provider.get_exchange_rate(args.from_asset, args.to_asset)
        if rate is None:
            print(f"No rate for {args.from_asset} -> {args.to_asset}", file=sys.stderr)
            return 1

        print(f"1 {args.from_asset.upper()} = {rate} {args.to_asset.upper()}")
        return 0
    finally:
        await provider.close()


def _print_update(snapshot: SettlementSnapshot) -> None:
    line = f"[{snapshot.elapsed_seconds:7.1f}s] {snapshot.state.value}"
    if snapshot.bridge_action:
        line += f" bridge={snapshot.bridge_action.classified_type.value}"
    if snapshot.target_tx:
        line += f" payout={snapshot.target_tx.hash}"
    if snapshot.failure_reason:
        line += f" reason={snapshot.failure_reason.value}"
    print(line, flush=True)


async def cmd_watch(args: argparse.Namespace) -> int:
    correlator = SettlementCorrelator()
    final = await correlator.watch(
        args.source_hash,
        args.from_chain,
        args.to_chain,
        args.destination,
        on_update=_print_update,
    )

    if args.json:
        _print_json(final.to_dict())

    try:
        final.raise_for_outcome()
    except SwitchlyError as e:
        print(str(e), file=sys.stderr)
        return 1

    return 0 if final.state == SettlementState.COMPLETED else 1


def cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    from switchlyswap.api.app import create_app

    settings = get_settings()
    host = args.host or settings.api_host
    port = args.port or settings.api_port

    logger.info(f"Starting API server on {host}:{port}")
    uvicorn.run(
        create_app(),
        host=host,
        port=port,
        log_level="debug" if settings.debug else "info",
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="switchlyswap",
        description="Quote cross-chain swaps and track their settlement on Switchly",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    quote = sub.add_parser("quote", help="Quote a swap")
    quote.add_argument("from_asset", help="Source ticker (e.g. ETH.ETH)")
    quote.add_argument("to_asset", help="Destination ticker (e.g. XLM.XLM)")
    quote.add_argument("amount", help="Input amount in human units")
    quote.add_argument("--to", dest="destination", help="Payout address; prints swap instructions")

    rate = sub.add_parser("rate", help="Show the exchange rate for a pair")
    rate.add_argument("from_asset")
    rate.add_argument("to_asset")

    watch = sub.add_parser("watch", help="Track a swap until it settles")
    watch.add_argument("source_hash", help="Source chain transaction hash")
    watch.add_argument("--from-chain", required=True, help="Source chain (ETH, XLM)")
    watch.add_argument("--to-chain", required=True, help="Destination chain (ETH, XLM)")
    watch.add_argument("--to", dest="destination", required=True, help="Payout address")
    watch.add_argument("--json", action="store_true", help="Print the final snapshot as JSON")

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = get_settings()
    log_level = logging.DEBUG if (args.verbose or settings.debug) else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.command == "serve":
        return cmd_serve(args)

    commands = {
        "quote": cmd_quote,
        "rate": cmd_rate,
        "watch": cmd_watch,
    }

    try:
        return asyncio.run(commands[args.command](args))
    except ProbeTransientError as e:
        print(f"Network error: {e}", file=sys.stderr)
        return 3
    except (SwitchlyError, ValueError) as e:
        print(str(e), file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
        return 130


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
