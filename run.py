#!/usr/bin/env python3
"""
Space Rivals - Main runner script

Usage:
    python run.py                    # Run with defaults from config/config.yaml
    python run.py --rounds 10        # Stop after 10 rounds
    python run.py --quiet            # Log only, no console narration
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

from dotenv import find_dotenv, load_dotenv, set_key

from rivals.config import get_validated_config, load_config, set_config_value
from rivals.ledger.keys import Ed25519Signer
from rivals.ledger.sui_rpc import SuiJsonRpcLedger
from rivals.simulation import SimulationRunner

# Load environment variables
load_dotenv()


def load_signers(env_path: str | None = None) -> tuple[Ed25519Signer, Ed25519Signer]:
    """Primary key from PRIVATE_KEY; rival key from PRIVATE_KEY_2.

    A missing rival key is generated once and appended to .env so the rival
    keeps its address (and its fleet) across runs.
    """
    primary_secret = os.environ.get("PRIVATE_KEY")
    if not primary_secret:
        raise SystemExit("PRIVATE_KEY is not set (see .env)")
    primary = Ed25519Signer.from_secret(primary_secret)

    rival_secret = os.environ.get("PRIVATE_KEY_2")
    if rival_secret:
        return primary, Ed25519Signer.from_secret(rival_secret)

    rival = Ed25519Signer.generate()
    path = env_path or find_dotenv(usecwd=True) or str(Path.cwd() / ".env")
    Path(path).touch(exist_ok=True)
    set_key(path, "PRIVATE_KEY_2", rival.export_secret())
    print(f"Generated rival key {rival.address}, saved as PRIVATE_KEY_2 in {path}")
    return primary, rival


def main() -> None:
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        description="Run the Space Rivals agents"
    )
    parser.add_argument(
        "--config", default="config/config.yaml", help="Path to config file"
    )
    parser.add_argument("--rounds", type=int, help="Stop after N rounds (0 = until Ctrl+C)")
    parser.add_argument("--state-file", type=str, help="Override state.state_file")
    parser.add_argument("--quiet", action="store_true", help="Suppress output")
    args: argparse.Namespace = parser.parse_args()

    load_config(args.config)
    if args.rounds is not None:
        set_config_value("loop.max_rounds", args.rounds)
    if args.state_file:
        set_config_value("state.state_file", args.state_file)
    config = get_validated_config()

    logging.basicConfig(
        level=logging.WARNING if args.quiet else getattr(logging, config.logging.level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not config.ledger.package_id:
        print("PACKAGE_ID is not set (see .env)", file=sys.stderr)
        sys.exit(1)

    primary, rival = load_signers()
    ledger = SuiJsonRpcLedger(
        config.ledger.rpc_url,
        timeout=config.ledger.request_timeout,
        gas_budget=config.ledger.gas_budget,
    )
    runner = SimulationRunner(config, ledger, primary, rival, verbose=not args.quiet)
    runner.run()


if __name__ == "__main__":
    main()
