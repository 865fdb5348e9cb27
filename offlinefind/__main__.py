"""usage: python -m offlinefind"""  # noqa: D400, D415

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from importlib.metadata import version
from pathlib import Path

from .config import EndpointConfig
from .devices import load_devices
from .errors import ReportDecryptionError
from .keys import KeyPair
from .reports import EncryptedReport, HttpReportStore, LocationReportsFetcher, decrypt_report
from .util.files import dump_json, save_and_return_json
from .util.parsers import bytes_to_hex

logger = logging.getLogger(__name__)


def main() -> None:  # noqa: D103
    parser = argparse.ArgumentParser(prog="offlinefind", description="OfflineFind CLI tool")
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=version("OfflineFind"),
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="INFO",
        help="Set the logging level (default: INFO)",
    )
    subparsers = parser.add_subparsers(dest="command", title="commands")
    subparsers.required = True

    keys_parser = subparsers.add_parser(
        "keys",
        help="Print the public, advertisement and hashed advertisement keys of private keys.",
    )
    keys_parser.add_argument("private_keys", nargs="+", help="Base64-encoded private key(s)")

    decrypt_parser = subparsers.add_parser(
        "decrypt",
        help="Decrypt a single base64-encoded report payload offline.",
    )
    decrypt_parser.add_argument("--key", required=True, help="Base64-encoded private key")
    decrypt_parser.add_argument("--payload", required=True, help="Base64-encoded report payload")

    fetch_parser = subparsers.add_parser(
        "fetch",
        help="""
        Fetch and decrypt the location history of all active devices.

        Devices are read from a JSON list of records like
        `{"name": "...", "id": ..., "privateKey": "...", "isActive": true}`.
        Endpoint settings come from --config, and can be overridden by the other flags.
        """,
    )
    fetch_parser.add_argument("--devices", type=Path, required=True, help="Device records file")
    _add_endpoint_arguments(fetch_parser)
    fetch_parser.add_argument(
        "--out",
        type=Path,
        default=None,
        help="Also write the decrypted locations to this file.",
    )

    check_parser = subparsers.add_parser(
        "check",
        help="Check whether the report store endpoint is reachable.",
    )
    _add_endpoint_arguments(check_parser)

    args = parser.parse_args()
    logging.basicConfig(level=args.log_level.upper())
    if args.command == "keys":
        print_keys(args.private_keys)
    elif args.command == "decrypt":
        sys.exit(decrypt_single(args.key, args.payload))
    elif args.command == "fetch":
        config = _endpoint_config(args)
        sys.exit(asyncio.run(fetch(args.devices, config, args.out)))
    elif args.command == "check":
        sys.exit(asyncio.run(check(_endpoint_config(args))))
    else:
        parser.print_help()
        parser.exit(1)


def _add_endpoint_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", type=Path, default=None, help="Endpoint config file")
    parser.add_argument("--url", default=None, help="Report store endpoint URL")
    parser.add_argument("--user", default=None, help="HTTP Basic username")
    parser.add_argument("--password", default=None, help="HTTP Basic password")
    parser.add_argument("--days", type=int, default=None, help="Days of history to fetch")
    parser.add_argument("--timeout", type=float, default=None, help="Request timeout (s)")


def _endpoint_config(args: argparse.Namespace) -> EndpointConfig:
    """Load the endpoint config file, if any, and apply the command line overrides."""
    config = EndpointConfig.from_json(args.config) if args.config else EndpointConfig()
    return EndpointConfig(
        url=args.url or config.url,
        username=args.user if args.user is not None else config.username,
        password=args.password if args.password is not None else config.password,
        days=args.days or config.days,
        timeout=args.timeout or config.timeout,
    )


def print_keys(private_keys: list[str]) -> None:
    """Print the derived keys of one or more base64-encoded private keys."""
    out = []
    for private_key in private_keys:
        key = KeyPair.from_b64(private_key)
        out.append(
            {
                "public_key": bytes_to_hex(key.public_key_bytes),
                "advertisement_key": key.adv_key_b64,
                "hashed_advertisement_key": key.hashed_adv_key_b64,
            },
        )
    print(dump_json(out))  # noqa: T201


def decrypt_single(private_key: str, payload: str) -> int:
    """Decrypt a single report payload and print it. Returns the exit code."""
    key = KeyPair.from_b64(private_key)
    report = EncryptedReport(key.hashed_adv_key_b64, payload)
    try:
        location = decrypt_report(report, key)
    except ReportDecryptionError as e:
        logger.error("Could not decrypt report: %s", e)  # noqa: TRY400
        return 1

    print(dump_json(location.to_json(include_key=False)))  # noqa: T201
    return 0


async def fetch(devices_path: Path, config: EndpointConfig, out: Path | None = None) -> int:
    """Fetch, decrypt and print the locations of all active devices. Returns the exit code."""
    devices = load_devices(devices_path)
    if not devices:
        logger.warning("No active devices to fetch")
        return 0

    async with HttpReportStore.from_config(config) as store:
        fetcher = LocationReportsFetcher(store)
        result = await fetcher.fetch_locations(devices, config.days)

    if result.nothing_fetched:
        for device, error in result.device_failures:
            logger.error("Failed to fetch %s: %s", device.name, error)
        return 1

    locations = save_and_return_json(
        [loc.to_json(include_key=False) for loc in result.locations],
        out,
    )
    print(dump_json(locations))  # noqa: T201
    logger.info("Fetched %i location(s)", result.success_count)
    return 0


async def check(config: EndpointConfig) -> int:
    """Check the connection to the report store and print the outcome. Returns the exit code."""
    async with HttpReportStore.from_config(config) as store:
        result = await store.check_connection()

    print(dump_json({"url": store.url, **result.to_json()}))  # noqa: T201
    if not result.ok:
        logger.error("Report store check failed: %s", result.detail)
        return 1
    return 0


if __name__ == "__main__":
    main()
