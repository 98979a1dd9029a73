"""
Mothership CLI entry point.

Usage:
    mothership status
    mothership export [--output PATH]
    mothership estimate FILE
    mothership write FILE [--shrink] [--assets-out PATH]
    mothership migrate
    mothership clear --yes
    mothership --help
    mothership --version

The backend and limits come from MOTHERSHIP_* environment variables (see
MothershipSettings). Results are printed to stdout as JSON; logs go to stderr.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from mothership_core.config import settings
from mothership_core.document import split_config
from mothership_core.exceptions import SerializationError
from mothership_core.logging_service import LoggingService
from mothership_core.models import LoadStatus, MigrationStatus
from mothership_core.store import ConfigStore, create_backend
from mothership_core.utils import configure_logging
from mothership_db.exceptions import BackendError


def _emit(payload: Dict[str, Any]) -> None:
    print(json.dumps(payload, indent=2, default=str))


def _read_document(path: Path) -> Dict[str, Any]:
    with open(path, encoding="utf-8") as handle:
        document = json.load(handle)
    if not isinstance(document, dict):
        raise ValueError(f"{path} must hold a JSON object, got {type(document).__name__}")
    return document


async def _status(store: ConfigStore, args: argparse.Namespace) -> int:
    result = await store.load()
    payload: Dict[str, Any] = {"status": result.status.value, "reason": result.reason}
    if result.meta is not None:
        payload["meta"] = result.meta.to_storage()
    if result.ok:
        payload["estimate"] = store.estimate(result.document).to_dict()
    if result.status is LoadStatus.UNSUPPORTED:
        payload["version"] = result.version
    _emit(payload)
    return 0 if result.status in (LoadStatus.OK, LoadStatus.NOT_FOUND) else 1


async def _export(store: ConfigStore, args: argparse.Namespace) -> int:
    state = await store.export_state()
    if args.output:
        args.output.write_text(json.dumps(state, indent=2), encoding="utf-8")
        _emit({"exported": str(args.output), "chunks": len(state["chunks"])})
    else:
        _emit(state)
    return 0


async def _estimate(store: ConfigStore, args: argparse.Namespace) -> int:
    sync_config, _ = split_config(_read_document(args.file))
    estimate = store.estimate(sync_config)
    limits = store.config.limits
    _emit(
        {
            **estimate.to_dict(),
            "limit_item_bytes": limits.max_item_bytes,
            "limit_total_bytes": limits.max_total_bytes,
            "headroom": max(0, limits.max_total_bytes - estimate.total_bytes),
            "fits": not store.exceeds_limits(estimate),
            "violations": [item.key for item in store.estimator.violating_items(estimate)],
        }
    )
    return 0


async def _write(store: ConfigStore, args: argparse.Namespace) -> int:
    sync_config, local_assets = split_config(_read_document(args.file))
    payload: Dict[str, Any] = {}

    if args.shrink:
        shrink = store.shrink_to_fit(sync_config)
        sync_config = shrink.document
        payload["removed"] = shrink.removed

    asset_count = len(local_assets["backgroundUploads"]) + len(local_assets["linkIcons"])
    if args.assets_out:
        args.assets_out.write_text(json.dumps(local_assets, indent=2), encoding="utf-8")
    elif asset_count:
        print(
            f"warning: {asset_count} device-local data: URL assets are not synced; "
            "pass --assets-out to keep them",
            file=sys.stderr,
        )

    result = await store.write(sync_config)
    payload.update(
        {
            "ok": result.ok,
            "committed": result.committed,
            "local_assets": {
                "backgroundUploads": len(local_assets["backgroundUploads"]),
                "linkIcons": len(local_assets["linkIcons"]),
            },
        }
    )
    if result.estimate is not None:
        payload["estimate"] = result.estimate.to_dict()
    if args.assets_out:
        payload["assets_out"] = str(args.assets_out)
    if result.meta is not None and result.committed:
        payload["meta"] = result.meta.to_storage()
    if result.error is not None:
        payload["error"] = result.error.to_dict()
        LoggingService.log_error(result.error, context={"command": "write"})

    _emit(payload)
    return 0 if result.ok else 1


async def _migrate(store: ConfigStore, args: argparse.Namespace) -> int:
    result = await store.migrate_if_needed()
    _emit(
        {
            "status": result.status.value,
            "reason": result.reason,
            "legacy_removed": result.legacy_removed,
        }
    )
    return 1 if result.status is MigrationStatus.FAILED else 0


async def _clear(store: ConfigStore, args: argparse.Namespace) -> int:
    if not args.yes:
        print("Refusing to clear storage without --yes", file=sys.stderr)
        return 2
    await store.clear()
    _emit({"cleared": True})
    return 0


COMMANDS = {
    "status": _status,
    "export": _export,
    "estimate": _estimate,
    "write": _write,
    "migrate": _migrate,
    "clear": _clear,
}


async def run(args: argparse.Namespace, store: Optional[ConfigStore] = None) -> int:
    """Execute one parsed command against ``store`` (built from settings if omitted)."""
    owns_backend = store is None
    if store is None:
        store = ConfigStore(create_backend(settings), settings)
    try:
        return await COMMANDS[args.command](store, args)
    finally:
        if owns_backend:
            await store.backend.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mothership", description="Chunked config storage for the Mothership start page"
    )
    parser.add_argument("--version", action="version", version="%(prog)s 0.1.0")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("status", help="Load and verify the committed config")

    export_parser = subparsers.add_parser("export", help="Dump every stored key for diagnostics")
    export_parser.add_argument("--output", type=Path, help="Write the export to a file")

    estimate_parser = subparsers.add_parser("estimate", help="Size a config file against quotas")
    estimate_parser.add_argument("file", type=Path, help="Config JSON file")

    write_parser = subparsers.add_parser("write", help="Commit a config file")
    write_parser.add_argument("file", type=Path, help="Config JSON file")
    write_parser.add_argument(
        "--shrink", action="store_true", help="Drop backgrounds, quotes, links until it fits"
    )
    write_parser.add_argument(
        "--assets-out", type=Path, help="Save device-local data: URL assets to this file"
    )

    subparsers.add_parser("migrate", help="Migrate the legacy single-key record")

    clear_parser = subparsers.add_parser("clear", help="Remove all config keys")
    clear_parser.add_argument("--yes", action="store_true", help="Confirm the reset")

    return parser


def main() -> None:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    configure_logging()
    try:
        code = asyncio.run(run(args))
    except (OSError, ValueError, SerializationError, BackendError) as e:
        print(f"error: {e}", file=sys.stderr)
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    main()
