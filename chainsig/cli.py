"""CLI entry point for chainsig."""

import argparse
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

from .address import ScriptType
from .config import Config, parse_args
from .derivation import DerivationMismatch, verify_address_info
from .descriptor import decode_descriptors, get_master_key
from .errors import ChainsigError
from .metrics import get_metrics_output
from .outcome import decode_transaction_response, extract_signatures, extract_single
from .signature import assemble

logger = logging.getLogger(__name__)


def setup_logging(log_level: str) -> None:
    """Configure logging."""
    logging.basicConfig(
        level=getattr(logging, log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def _read_input(path: str) -> bytes:
    if path == "-":
        return sys.stdin.buffer.read()
    return Path(path).read_bytes()


def cmd_extract(config: Config, args: argparse.Namespace) -> int:
    response = decode_transaction_response(_read_input(args.outcome))
    if args.all:
        signatures = extract_signatures(response)
    else:
        components = extract_single(response)
        signatures = [assemble(components.big_r, components.s)]

    for signature in signatures:
        print(signature.hex())
    return 0


def cmd_master_key(config: Config, args: argparse.Namespace) -> int:
    descriptors = decode_descriptors(_read_input(args.descriptors))
    master = get_master_key(descriptors, ScriptType(args.script_type), config.network)
    print(master.neuter())
    print(f"fingerprint: {master.fingerprint.hex()}")
    return 0


def cmd_verify_address(config: Config, args: argparse.Namespace) -> int:
    script_type = ScriptType(args.script_type)
    descriptors = decode_descriptors(_read_input(args.descriptors))
    master = get_master_key(descriptors, script_type, config.network)
    try:
        account = verify_address_info(
            master,
            _read_input(args.address_info),
            address=args.address,
            script_type=script_type,
            network=config.network,
        )
    except DerivationMismatch as e:
        print(f"MISMATCH {e.field}: node={e.observed} derived={e.expected}", file=sys.stderr)
        return 1

    print(f"OK {account.address} {account.public_key.hex()}")
    return 0


COMMANDS = {
    "extract": cmd_extract,
    "master-key": cmd_master_key,
    "verify-address": cmd_verify_address,
}


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point."""
    try:
        config, args = parse_args(argv)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    setup_logging(config.normalized_log_level)

    try:
        status = COMMANDS[args.command](config, args)
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        status = 1
    except ChainsigError as e:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        status = 1

    if config.print_metrics:
        sys.stderr.write(get_metrics_output().decode("utf-8"))
    return status


if __name__ == "__main__":
    sys.exit(main())
