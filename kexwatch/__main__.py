"""진입점: python -m kexwatch"""

from __future__ import annotations

import argparse
import logging
import sys

logger = logging.getLogger("kexwatch.cli")


def _positive_float(value: str) -> float:
    number = float(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be positive: {value}")
    return number


def build_parser() -> argparse.ArgumentParser:
    """CLI 인자 파서를 만든다."""
    parser = argparse.ArgumentParser(
        prog="kexwatch",
        description="kexwatch - SSH Terrapin (CVE-2023-48795) exposure scanner",
    )
    parser.add_argument(
        "address",
        help="Target host[:port] to connect to, or local address to listen on with --listen",
    )
    parser.add_argument(
        "-l", "--listen",
        action="store_true",
        help="Listen on ADDRESS and scan the first SSH client that connects",
    )
    parser.add_argument(
        "-t", "--timeout",
        type=_positive_float,
        default=None,
        help="Connect/accept/read timeout in seconds (default: scan.timeout from config)",
    )
    parser.add_argument(
        "-j", "--json",
        action="store_true",
        help="Print the result as JSON",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "-c", "--config",
        default=None,
        help="Path to configuration YAML file (default: config/default.yaml)",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """kexwatch CLI 진입점. 스캔을 수행하고 결과를 stdout에 출력한다."""
    parser = build_parser()
    args = parser.parse_args(argv)

    import yaml

    from kexwatch.detection.models import ScanMode
    from kexwatch.protocols.errors import ScanIOError
    from kexwatch.reporting import render_json, render_text
    from kexwatch.scanner import TerrapinScanner
    from kexwatch.utils.config import Config
    from kexwatch.utils.logging_setup import setup_logging

    try:
        config = Config.load(args.config)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        parser.error(f"cannot load config: {exc}")
    setup_logging(config, verbose=args.verbose)

    mode = ScanMode.CLIENT if args.listen else ScanMode.SERVER
    scanner = TerrapinScanner.from_config(
        args.address, mode, config, timeout=args.timeout, verbose=args.verbose,
    )

    try:
        report = scanner.scan()
    except (ScanIOError, ValueError) as exc:   # ProtocolError는 ValueError 하위 클래스
        logger.error("Scan failed: %s", exc)
        logger.debug("Scan failure details", exc_info=True)
        return 1
    except KeyboardInterrupt:
        return 130

    print(render_json(report) if args.json else render_text(report))
    return 0


if __name__ == "__main__":
    sys.exit(main())
