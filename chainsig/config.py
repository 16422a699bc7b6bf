"""Configuration management using msgspec Struct."""

import argparse
import os
from collections.abc import Sequence

import msgspec

from .address import Network, ScriptType

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Config(msgspec.Struct, frozen=True):
    """Application configuration using msgspec Struct."""

    # Network the node runs on
    network: Network = Network.REGTEST

    # Logging
    log_level: str = "INFO"

    # Dump Prometheus metrics to stderr after the command
    print_metrics: bool = False

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.log_level.upper() not in VALID_LOG_LEVELS:
            raise ValueError(f"log_level must be one of {VALID_LOG_LEVELS}, got {self.log_level}")

    @property
    def normalized_log_level(self) -> str:
        """Return normalized uppercase log level."""
        return self.log_level.upper()


def build_parser() -> argparse.ArgumentParser:
    """Build the command line parser.

    Global option defaults come from ``CHAINSIG_NETWORK`` and
    ``CHAINSIG_LOG_LEVEL`` when set.
    """
    parser = argparse.ArgumentParser(
        prog="chainsig",
        description="chainsig - verify MPC signatures and regtest wallet derivation",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--network",
        choices=[n.value for n in Network],
        default=os.getenv("CHAINSIG_NETWORK", Network.REGTEST.value),
        help="Bitcoin network the wallet runs on",
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=VALID_LOG_LEVELS,
        default=os.getenv("CHAINSIG_LOG_LEVEL", "INFO").upper(),
        help="Logging level",
    )
    parser.add_argument(
        "--print-metrics",
        action="store_true",
        default=False,
        help="Write Prometheus metrics to stderr when done",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    extract = commands.add_parser(
        "extract",
        help="Assemble compact signatures from a transaction status JSON file",
    )
    extract.add_argument("outcome", help="Path to the transaction status JSON ('-' for stdin)")
    extract.add_argument(
        "--all",
        action="store_true",
        default=False,
        help="Collect signatures from every receipt instead of the final status",
    )

    master_key = commands.add_parser(
        "master-key",
        help="Show the master key of a wallet descriptor listing",
    )
    master_key.add_argument("descriptors", help="Path to the listdescriptors JSON")
    _add_script_type(master_key)

    verify = commands.add_parser(
        "verify-address",
        help="Check a getaddressinfo record against the wallet master key",
    )
    verify.add_argument("descriptors", help="Path to the listdescriptors JSON")
    verify.add_argument("address_info", help="Path to the getaddressinfo JSON")
    verify.add_argument("--address", default=None, help="Queried address (defaults to the record's)")
    _add_script_type(verify)

    return parser


def _add_script_type(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--script-type",
        choices=[t.value for t in ScriptType],
        default=ScriptType.SEGWIT.value,
        help="Script type of the wallet addresses",
    )


def get_config(args: argparse.Namespace) -> Config:
    """Build configuration from parsed command line arguments."""
    config_dict: dict[str, object] = {
        "network": args.network,
        "log_level": args.log_level,
        "print_metrics": args.print_metrics,
    }

    try:
        config = msgspec.convert(config_dict, Config)
    except msgspec.ValidationError as e:
        raise ValueError(f"Configuration validation error: {e}")

    return config


def parse_args(argv: Sequence[str] | None = None) -> tuple[Config, argparse.Namespace]:
    """Parse command line arguments into the configuration and the command."""
    args = build_parser().parse_args(argv)
    return get_config(args), args
