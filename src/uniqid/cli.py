"""UNIQ ID CLI: command-line access to hashing, package checks and login.

Usage:
    uniqid status
    uniqid hash --email user@example.com --passphrase 'Str0ng!Pass'
    uniqid check-package package.json
    uniqid login package.json
    uniqid lookup-root 0x1f...
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from uniqid.config import Settings
from uniqid.service import ServiceResult, UniqIdService


def _make_service() -> UniqIdService:
    return UniqIdService(Settings.from_env())


def _load_package(path: Path) -> Any:
    with open(path, encoding="utf-8") as fh:
        return json.load(fh)


def _report(result: ServiceResult) -> int:
    if result.success:
        print(json.dumps(result.data, indent=2, default=str))
        return 0
    print(f"Failed: {'; '.join(result.errors)}", file=sys.stderr)
    return 1


def cmd_status(args: argparse.Namespace) -> int:
    service = _make_service()
    print(json.dumps(service.status(), indent=2))
    return 0


def cmd_hash(args: argparse.Namespace) -> int:
    service = _make_service()
    return _report(service.hash_identity(args.email, args.passphrase))


def cmd_check_package(args: argparse.Namespace) -> int:
    """Offline signature check of a saved package."""
    try:
        package = _load_package(args.file)
    except (OSError, json.JSONDecodeError) as exc:
        print(f"Failed: cannot read {args.file}: {exc}", file=sys.stderr)
        return 1
    return _report(_make_service().check_package(package))


def cmd_login(args: argparse.Namespace) -> int:
    try:
        package = _load_package(args.file)
    except (OSError, json.JSONDecodeError) as exc:
        print(f"Failed: cannot read {args.file}: {exc}", file=sys.stderr)
        return 1
    return _report(_make_service().login(package))


def cmd_lookup_root(args: argparse.Namespace) -> int:
    return _report(_make_service().lookup_root(args.root))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="uniqid",
        description="UNIQ ID: identity commitments anchored on Ethereum",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command")

    # status
    sub.add_parser("status", help="Show configuration and ledger status")

    # hash
    p_hash = sub.add_parser("hash", help="Compute field hashes, leaf and root")
    p_hash.add_argument("--email", required=True, help="Email address")
    p_hash.add_argument("--passphrase", required=True, help="Passphrase")

    # check-package
    p_check = sub.add_parser("check-package", help="Verify a package signature offline")
    p_check.add_argument("file", type=Path, help="Path to the package JSON")

    # login
    p_login = sub.add_parser("login", help="Log in with a package against the ledger")
    p_login.add_argument("file", type=Path, help="Path to the package JSON")

    # lookup-root
    p_lookup = sub.add_parser("lookup-root", help="Latest id anchored for a root")
    p_lookup.add_argument("root", help="Root as 0x hex or decimal")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return 0

    commands = {
        "status": cmd_status,
        "hash": cmd_hash,
        "check-package": cmd_check_package,
        "login": cmd_login,
        "lookup-root": cmd_lookup_root,
    }

    handler = commands.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1

    return handler(args)


if __name__ == "__main__":
    raise SystemExit(main())
