import argparse
import json
import logging
import sys
from uuid import UUID

import uvicorn

from src.adapters.clock import SystemClock
from src.adapters.sqlite.migrator import SQLiteMigrator
from src.adapters.sqlite.repos import SQLiteAssetRepo
from src.api.auth_utils import create_access_token
from src.api.deps import Settings, get_settings, get_storage_backend
from src.components.assets import AssetStore
from src.core.errors import AssetError
from src.rules.loader import load_rules

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("cli")


def get_store(settings: Settings) -> AssetStore:
    if not settings.rules_path.exists():
        logger.error("Rules file %s not found.", settings.rules_path)
        sys.exit(1)
    load_rules(settings.rules_path)
    return AssetStore(
        SQLiteAssetRepo(settings.db_path),
        SystemClock(),
        storage=get_storage_backend(),
    )


def handle_migrate(settings: Settings, args: argparse.Namespace) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    applied = SQLiteMigrator(settings.db_path, str(settings.migrations_dir)).run_migrations()
    print(f"Applied {len(applied)} migration(s).")


def handle_purge(settings: Settings, args: argparse.Namespace) -> None:
    store = get_store(settings)
    out = store.purge(args.asset_id)
    print(f"Purged {out.asset_id} (blob deleted: {out.blob_deleted})")


def handle_stats(settings: Settings, args: argparse.Namespace) -> None:
    store = get_store(settings)
    stats = store.stats(args.owner)
    print(
        json.dumps(
            {
                "total": stats.total,
                "total_bytes": stats.total_bytes,
                "by_type": stats.by_type,
                "by_visibility": stats.by_visibility,
            },
            indent=2,
        )
    )


def handle_token(settings: Settings, args: argparse.Namespace) -> None:
    claims = {"sub": args.subject}
    if args.role:
        claims["role"] = args.role
    print(create_access_token(claims))


def handle_serve(settings: Settings, args: argparse.Namespace) -> None:
    uvicorn.run("src.api.main:app", host=args.host, port=args.port, reload=args.reload)


HANDLERS = {
    "migrate": handle_migrate,
    "purge": handle_purge,
    "stats": handle_stats,
    "token": handle_token,
    "serve": handle_serve,
}


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Asset storage administration")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # migrate
    subparsers.add_parser("migrate", help="Apply pending database migrations")

    # purge
    purge_parser = subparsers.add_parser("purge", help="Hard-delete an asset row and its blob")
    purge_parser.add_argument("asset_id", type=UUID, help="Asset UUID")

    # stats
    stats_parser = subparsers.add_parser("stats", help="Counts over active assets")
    stats_parser.add_argument("--owner", default=None, help="Restrict to one owner id")

    # token
    token_parser = subparsers.add_parser("token", help="Mint an access token for local testing")
    token_parser.add_argument("subject", help="Requester id (sub claim)")
    token_parser.add_argument("--role", default=None, help="Role claim, e.g. admin or designer")

    # serve
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)
    serve_parser.add_argument("--reload", action="store_true")

    args = parser.parse_args(argv)
    settings = get_settings()

    try:
        HANDLERS[args.command](settings, args)
    except AssetError as e:
        logger.error("%s: %s", e.code, e.message)
        sys.exit(1)


if __name__ == "__main__":
    main()
