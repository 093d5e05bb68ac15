import argparse
import logging
import os
import sys

from clipvault.config import LOG_PATH, PREVIEW_LENGTH
from clipvault.exceptions import ClipVaultError
from clipvault.utils import ensure_dirs, format_ts, truncate_text


def setup_logging(verbose: bool = False) -> None:
    ensure_dirs()
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.FileHandler(LOG_PATH),
            logging.StreamHandler(sys.stderr),
        ],
    )


def create_app():
    from clipvault.app import ClipVaultApp

    return ClipVaultApp()


def run_app(app, args) -> int:
    """Run the background workers until interrupted."""
    app.start()
    print("ClipVault is running. Press Ctrl+C to stop.")
    try:
        app.wait()
    except KeyboardInterrupt:
        pass
    finally:
        app.stop()
    return 0


def cmd_sync(app, args) -> int:
    result = app.sync_now()
    print(result.message)
    return 0 if result.success else 1


def cmd_bootstrap(app, args) -> int:
    result = app.bootstrap_now()
    print(result.message)
    return 0 if result.success else 1


def cmd_purge(app, args) -> int:
    if args.cadence:
        app.update_retention_settings(args.cadence)
    settings = app.get_retention_settings()
    deleted = app.run_retention_now()
    print(f"Retention: {settings.cadence.display_name}. Deleted {deleted} entries.")
    return 0


def print_entries(entries) -> None:
    if not entries:
        print("(No clipboard history)")
        return
    for entry in entries:
        marker = "*" if entry.pinned else " "
        sync = "S" if entry.is_synced else "L"
        preview = truncate_text(entry.content, PREVIEW_LENGTH)
        print(f"{entry.id:>6} {marker}{sync} {format_ts(entry.created_at)[:19]}  {preview}")


def cmd_history(app, args) -> int:
    print_entries(app.list_entries(limit=args.limit))
    return 0


def cmd_search(app, args) -> int:
    print_entries(app.search_entries(args.query, limit=args.limit))
    return 0


def cmd_add(app, args) -> int:
    text = args.text if args.text is not None else sys.stdin.read()
    entry = app.create_entry(text, source_app="clipvault-cli")
    print(f"Stored entry {entry.id}")
    return 0


def cmd_status(app, args) -> int:
    status = app.status()
    print(f"ClipVault v{status.version}")
    print(f"Database: {status.db_path}")
    print(f"Cloud: {'connected' if status.online else 'offline'}")
    if status.logged_in:
        print(f"User: {status.user_id} (tenant {status.tenant_id})")
    print(f"Local entries: {status.local_count} ({status.unsynced_count} not synced)")
    if status.remote_count is not None:
        print(f"Cloud entries: {status.remote_count}")
    return 0


COMMANDS = {
    "run": run_app,
    "sync": cmd_sync,
    "bootstrap": cmd_bootstrap,
    "purge": cmd_purge,
    "history": cmd_history,
    "search": cmd_search,
    "add": cmd_add,
    "status": cmd_status,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="clipvault",
        description="ClipVault - offline-first clipboard history with cloud sync",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  clipvault run                  # Run sync and retention workers
  clipvault sync                 # Push local changes to the cloud now
  clipvault bootstrap            # Pull the cloud history onto this device
  clipvault purge --cadence 7d   # Set retention to one week and apply it
  echo hello | clipvault add     # Store text from stdin
""",
    )
    parser.add_argument("--user", default=os.environ.get("CLIPVAULT_USER_ID"), help="User id")
    parser.add_argument("--tenant", default=os.environ.get("CLIPVAULT_TENANT_ID"), help="Tenant id")
    parser.add_argument("--email", default=os.environ.get("CLIPVAULT_EMAIL", ""), help="Account email")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    sub = parser.add_subparsers(dest="command")
    sub.add_parser("run", help="Run background workers in the foreground")
    sub.add_parser("sync", help="Push unsynced entries, tags and settings")
    sub.add_parser("bootstrap", help="Pull all cloud data for the tenant")
    purge = sub.add_parser("purge", help="Apply the retention policy now")
    purge.add_argument("--cadence", help="Set the retention cadence first (e.g. never, 24h, 3d, 7d, 30d)")
    history = sub.add_parser("history", help="List recent entries")
    history.add_argument("-n", "--limit", type=int, default=20)
    search = sub.add_parser("search", help="Search entries")
    search.add_argument("query")
    search.add_argument("-n", "--limit", type=int, default=25)
    add = sub.add_parser("add", help="Store text (argument or stdin)")
    add.add_argument("text", nargs="?")
    sub.add_parser("status", help="Show store and cloud status")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    command = args.command or "run"

    setup_logging(args.verbose)

    if command != "status" and not (args.user and args.tenant):
        print("Error: --user and --tenant (or CLIPVAULT_USER_ID / CLIPVAULT_TENANT_ID) are required")
        return 1

    try:
        app = create_app()
    except ClipVaultError as e:
        print(f"Error: {e}")
        return 1

    try:
        if args.user and args.tenant:
            # Only the long-running app pulls on login; `bootstrap` pulls by itself.
            app.login(args.user, args.tenant, args.email, bootstrap=command == "run")
        return COMMANDS[command](app, args)
    except ClipVaultError as e:
        print(f"Error: {e}")
        return 1
    finally:
        app.close()


if __name__ == "__main__":
    sys.exit(main())
