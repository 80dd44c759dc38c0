import argparse
import json
import logging
import os
import sys

from dotenv import load_dotenv

from application.ingestion import submit_ledger
from application.services import DeviceLink, LedgerStore, link_devices, register_player
from application.settlement import ReportFormat
from application.standings import format_standings, get_all_player_aggregates
from domain.errors import LedgerError
from infrastructure.db.stores import build_postgres_store, build_sqlite_store


load_dotenv()

DB_BACKEND = os.environ.get("DB_BACKEND", "sqlite")
DB_PATH = os.environ.get("DB_PATH", "poker.db")
DATABASE_URL = os.environ.get("DATABASE_URL")
APP_NAME = os.environ.get("APP_NAME", "Perkins-App")
CURRENCY_SYMBOL = os.environ.get("CURRENCY_SYMBOL", "€")
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

logger = logging.getLogger("ledger_main")


def build_store() -> LedgerStore:
    if DB_BACKEND == "postgres":
        if not DATABASE_URL:
            raise RuntimeError("DATABASE_URL environment variable is not set.")
        return build_postgres_store({"dsn": DATABASE_URL})
    if DB_BACKEND != "sqlite":
        raise RuntimeError(f"Unsupported DB_BACKEND {DB_BACKEND!r}.")
    return build_sqlite_store(DB_PATH)


def _cmd_add_player(args: argparse.Namespace, store: LedgerStore) -> int:
    player = register_player(args.name, store)
    print(f"Registered {player.name} (id={player.id})")
    return 0


def _cmd_link(args: argparse.Namespace, store: LedgerStore) -> int:
    player = store.players.find_player_by_name(args.player)
    if player is None:
        print(f"No player named {args.player!r}.", file=sys.stderr)
        return 1
    link_devices([DeviceLink(device_id=d, player_id=player.id) for d in args.device_ids], store)
    print(f"Linked {len(args.device_ids)} device(s) to {player.name}")
    return 0


def _cmd_submit(args: argparse.Namespace, store: LedgerStore) -> int:
    with open(args.ledger_file, encoding="utf-8") as fh:
        payload = json.load(fh)

    report_format = ReportFormat(app_name=APP_NAME, currency_symbol=CURRENCY_SYMBOL)
    result = submit_ledger(args.url, payload, store, report_format)
    if result.is_blocked:
        print("These devices are not linked to a player yet:")
        for device in result.blocked:
            print(f"  {device.device_id}  ({device.label})")
        print("Link them with `link <player> <device_id>...` and submit again.")
        return 2

    print(result.settlement_report)
    return 0


def _cmd_standings(args: argparse.Namespace, store: LedgerStore) -> int:
    aggregates = get_all_player_aggregates(store)
    if not aggregates:
        print("No players registered yet.")
        return 0
    print(format_standings(aggregates, CURRENCY_SYMBOL))
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Poker ledger settlement and standings")
    sub = parser.add_subparsers(dest="command", required=True)

    add_player = sub.add_parser("add-player", help="register a new player")
    add_player.add_argument("name")
    add_player.set_defaults(handler=_cmd_add_player)

    link = sub.add_parser("link", help="link device ids to a registered player")
    link.add_argument("player")
    link.add_argument("device_ids", nargs="+")
    link.set_defaults(handler=_cmd_link)

    submit = sub.add_parser("submit", help="store a session ledger and print payouts")
    submit.add_argument("url", help="game URL, e.g. https://www.pokernow.com/games/<id>")
    submit.add_argument("ledger_file", help="path to the exported ledger JSON")
    submit.set_defaults(handler=_cmd_submit)

    standings = sub.add_parser("standings", help="print cumulative standings")
    standings.set_defaults(handler=_cmd_standings)
    return parser


def main(argv=None) -> int:
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    args = _build_parser().parse_args(argv)
    store = build_store()
    try:
        return args.handler(args, store)
    except LedgerError as exc:
        logger.error("%s", exc)
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
