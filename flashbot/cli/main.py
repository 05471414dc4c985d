"""CLI entrypoint for simulating and submitting bundles."""

from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence

from dotenv import load_dotenv
from web3 import Web3

from flashbot.config import FlashbotConfig, load_config
from flashbot.core.codec import BundleStats, UserStats
from flashbot.core.dispatcher import AggregateOutcome, FanoutRelayClient
from flashbot.core.signer import KeyPair
from flashbot.core.utils import get_logger

LOGGER = get_logger("flashbot.cli")

load_dotenv()

ClientFactory = Callable[..., FanoutRelayClient]


class BundleSubmitter:
    """High-level orchestrator for simulate / send / stats workflows."""

    def __init__(
        self,
        *,
        private_key: str,
        config: Optional[FlashbotConfig] = None,
        rpc_url: Optional[str] = None,
        web3_factory: Callable[[str], Web3] = lambda url: Web3(Web3.HTTPProvider(url)),
        client_factory: ClientFactory = FanoutRelayClient.from_endpoints,
    ) -> None:
        self.config = config or load_config()
        self.key = KeyPair.from_private_key(private_key)
        self.rpc_url = rpc_url
        self._web3_factory = web3_factory
        self.client = client_factory(
            self.config.relays,
            self.key,
            logger=LOGGER,
            max_workers=self.config.defaults.max_workers,
            default_timeout=self.config.defaults.timeout,
            verify_tls=self.config.defaults.verify_tls,
        )
        LOGGER.info(
            "Signing relay requests as %s for network %s (%s relays)",
            self.key.address,
            self.config.network_id,
            len(self.config.relays),
        )

    def current_block(self) -> int:
        """Latest block number from the node at ``rpc_url``."""
        if not self.rpc_url:
            raise ValueError("RPC_URL must be set when no target block is given")
        web3 = self._web3_factory(self.rpc_url)
        if not web3.is_connected():
            raise ConnectionError(f"Failed to connect to RPC: {self.rpc_url}")
        if web3.eth.chain_id != self.config.network_id:
            raise ValueError(f"Wrong chain! Expected {self.config.network_id}, got {web3.eth.chain_id}")
        return web3.eth.block_number

    def simulate(self, bundle: Sequence[str], timeout: Optional[float] = None) -> AggregateOutcome:
        outcome = self.client.broadcast_call(bundle, timeout)
        self._log_outcome("Called bundle", outcome)
        return outcome

    def send(
        self,
        bundle: Sequence[str],
        *,
        target_block: Optional[int] = None,
        blocks: int = 1,
        timeout: Optional[float] = None,
    ) -> List[AggregateOutcome]:
        """Submit ``bundle`` to ``blocks`` consecutive target blocks."""
        if blocks < 1:
            raise ValueError("blocks must be at least 1")
        first = target_block if target_block is not None else self.current_block() + 1

        outcomes = []
        for block in range(first, first + blocks):
            outcome = self.client.broadcast_send(bundle, block, timeout)
            self._log_outcome(f"Sent bundle for block {block}", outcome)
            outcomes.append(outcome)
        return outcomes

    def bundle_stats(self, bundle_hash: str, block_number: int, timeout: Optional[float] = None) -> BundleStats:
        return self.client.get_bundle_stats(bundle_hash, block_number, timeout)

    def user_stats(self, block_number: int, timeout: Optional[float] = None) -> UserStats:
        return self.client.get_user_stats(block_number, timeout)

    def close(self) -> None:
        self.client.close()

    @staticmethod
    def _log_outcome(label: str, outcome: AggregateOutcome) -> None:
        if outcome.skipped:
            LOGGER.info("%s: skipped relays without simulation %s", label, ", ".join(outcome.skipped))
        if outcome.ok:
            LOGGER.info("%s: %s", label, outcome.hash_label)
        elif outcome.partial:
            LOGGER.warning("%s with failures: %s | %s", label, outcome.hash_label, outcome.error)
        elif outcome.error is not None:
            LOGGER.error("%s: every relay failed: %s", label, outcome.error)
        else:
            LOGGER.warning("%s: no relay was contacted", label)


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Simulate and submit bundles to Flashbots-compatible relays")
    parser.add_argument("--config", type=Path, default=None, help="Path to the relay config JSON")
    parser.add_argument("--timeout", type=float, default=None, help="Per-relay request timeout in seconds")
    commands = parser.add_subparsers(dest="command", required=True)

    call = commands.add_parser("call", help="Simulate a bundle on relays that support it")
    call.add_argument("--tx", action="append", required=True, help="Signed transaction hex, repeat in order")

    send = commands.add_parser("send", help="Submit a bundle to every relay")
    send.add_argument("--tx", action="append", required=True, help="Signed transaction hex, repeat in order")
    send.add_argument("--block", type=int, default=None, help="Target block (defaults to the next block)")
    send.add_argument("--blocks", type=int, default=1, help="Number of consecutive blocks to target")

    stats = commands.add_parser("stats", help="Query bundle stats")
    stats.add_argument("--bundle-hash", required=True)
    stats.add_argument("--block", type=int, required=True)

    user_stats = commands.add_parser("user-stats", help="Query signer reputation stats")
    user_stats.add_argument("--block", type=int, required=True)

    return parser.parse_args(argv)


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, sort_keys=False))


def run(submitter: BundleSubmitter, args: argparse.Namespace) -> int:
    """Execute the parsed command; returns the process exit code."""
    if args.command == "call":
        outcome = submitter.simulate(args.tx, args.timeout)
        _print_json(outcome.to_dict())
        return 0 if outcome.results else 1

    if args.command == "send":
        outcomes = submitter.send(args.tx, target_block=args.block, blocks=args.blocks, timeout=args.timeout)
        _print_json([outcome.to_dict() for outcome in outcomes])
        return 0 if all(outcome.results for outcome in outcomes) else 1

    if args.command == "stats":
        _print_json(submitter.bundle_stats(args.bundle_hash, args.block, args.timeout).to_dict())
        return 0

    if args.command == "user-stats":
        _print_json(submitter.user_stats(args.block, args.timeout).to_dict())
        return 0

    raise ValueError(f"unknown command: {args.command}")


def main(argv: Optional[List[str]] = None) -> None:
    args = _parse_args(argv)

    rpc_url_env = os.getenv("RPC_URL") or ""
    rpc_url = rpc_url_env.strip() or None

    private_key_env = os.getenv("PRIVATE_KEY") or ""
    private_key = private_key_env.strip()

    if not private_key:
        print("❌ Error: PRIVATE_KEY environment variable not set")
        sys.exit(1)

    try:
        submitter = BundleSubmitter(
            private_key=private_key,
            config=load_config(args.config),
            rpc_url=rpc_url,
        )
        try:
            code = run(submitter, args)
        finally:
            submitter.close()
    except Exception as exc:
        print(f"\n❌ Error: {exc}")
        sys.exit(1)

    if code:
        sys.exit(code)


if __name__ == "__main__":  # pragma: no cover - CLI entry
    main()
