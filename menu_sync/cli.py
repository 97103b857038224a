from __future__ import annotations

import argparse
import asyncio
import json
import logging
from typing import Optional, Sequence

from menu_core.merger import BroadcastMerger
from menu_core.store import OptimisticStore
from menu_sync.client import SyncClient
from menu_sync.logging_config import setup_logging
from menu_sync.reconciler import Reconciler
from menu_sync.rest import MenuRestClient
from menu_sync.settings import SyncSettings, load_settings
from menu_sync.ws_stream import MenuWSStream


log = logging.getLogger("menu_sync.cli")


def build_client(cfg: SyncSettings, store: Optional[OptimisticStore] = None) -> SyncClient:
    store = store or OptimisticStore()
    merger = BroadcastMerger(store, remove_on_delete=cfg.delete_marker_removes)
    return SyncClient(
        store=store,
        rest=MenuRestClient.from_settings(cfg),
        merger=merger,
        discard_stale_saves=cfg.discard_stale_saves,
    )


def build_stream(cfg: SyncSettings, merger: BroadcastMerger) -> MenuWSStream:
    if not cfg.ws_url:
        raise SystemExit("MENU_WS_URL (or ws_url in --config) is required for listen")
    stream = MenuWSStream(
        ws_url=cfg.ws_url,
        on_update=lambda msg, _recv_ms: merger.handle_message(msg),
        on_status=lambda typ, details: log.info("ws %s %s", typ, details),
        token=cfg.token,
        insecure_tls=cfg.insecure_tls,
        ping_interval_s=cfg.ws_ping_interval_s,
        ping_timeout_s=cfg.ws_ping_timeout_s,
        reconnect_backoff_s=cfg.ws_reconnect_backoff_s,
        reconnect_backoff_max_s=cfg.ws_reconnect_backoff_max_s,
        max_session_s=cfg.ws_max_session_s,
    )
    merger.send = stream.send
    return stream


def _print_items(client: SyncClient) -> None:
    print(json.dumps([x.to_dict() for x in client.store.items], ensure_ascii=False, indent=2))


async def _cmd_fetch(cfg: SyncSettings, args) -> int:
    client = build_client(cfg)
    result = await client.fetch_all()
    if not result.ok:
        log.error("Fetch failed: %s", result.error)
        return 1
    _print_items(client)
    return 0


async def _cmd_import(cfg: SyncSettings, args) -> int:
    client = build_client(cfg)
    reconciler = Reconciler(client)
    result = reconciler.import_from_file(args.file)
    log.info("Import: %s %s", result.action, result.details)
    if not args.upload:
        _print_items(client)
        return 0
    result = await reconciler.upload_all()
    if not result.ok:
        log.error("Upload failed: %s", "; ".join(client.errors))
        return 1
    log.info("Upload: %s %s", result.action, result.details)
    return 0


async def _cmd_listen(cfg: SyncSettings, args) -> int:
    client = build_client(cfg)
    client.store.subscribe(lambda items: log.info("Menu now has %d items", len(items)))
    stream = build_stream(cfg, client.merger)
    await client.fetch_all()
    await stream.run_async()
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Vendor menu sync client")
    ap.add_argument("--config", default=None, help="YAML file overriding env settings")
    ap.add_argument("--log-level", default="INFO")
    ap.add_argument("--log-dir", default="logs")
    sub = ap.add_subparsers(dest="command", required=True)

    sub.add_parser("fetch", help="Load and print the menu")

    p_import = sub.add_parser("import", help="Import a spreadsheet into the local menu")
    p_import.add_argument("file")
    p_import.add_argument("--upload", action="store_true", help="Bulk upload after import")

    p_tpl = sub.add_parser("export-template", help="Write the import template")
    p_tpl.add_argument("out")

    sub.add_parser("listen", help="Follow the broadcast channel")

    args = ap.parse_args(argv)
    setup_logging(level=args.log_level, component="menu_sync", base_dir=args.log_dir)
    cfg = load_settings(args.config)

    if args.command == "export-template":
        client = build_client(cfg)
        Reconciler(client).export_template(args.out)
        return 0
    if args.command == "fetch":
        return asyncio.run(_cmd_fetch(cfg, args))
    if args.command == "import":
        return asyncio.run(_cmd_import(cfg, args))
    if args.command == "listen":
        try:
            return asyncio.run(_cmd_listen(cfg, args))
        except KeyboardInterrupt:
            return 0
    ap.error(f"unknown command {args.command}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
