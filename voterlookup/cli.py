# cli.py

import argparse
import sys

from rich.console import Console
from rich.table import Table

from .config import get_config
from .exceptions import VoterLookupError
from .logger import get_logger
from .models import SearchMethod
from .persistence import PostgresDatastore
from .presenters import format_results_message
from .search import VoterSearchService
from .wards import validate_ward

console = Console()
logger = get_logger("voterlookup.cli")


def build_service(config) -> VoterSearchService:
    return VoterSearchService(PostgresDatastore(config.db), config.search)


def render_records(records, title: str) -> Table:
    table = Table(title=title)
    for column in ("#", "Name", "Relative", "Age", "Gender", "EPIC", "Part", "Sr No", "House"):
        table.add_column(column)
    for i, record in enumerate(records, start=1):
        table.add_row(
            str(i),
            record.full_name or "",
            record.relation_name or "",
            str(record.age or ""),
            record.gender or "",
            record.epic_number or "",
            str(record.part_no or ""),
            str(record.sr_no or ""),
            record.house_number or "",
        )
    return table


def cmd_search(args, config) -> int:
    ward = validate_ward(args.ward, config.wards.all_wards())
    records = build_service(config).search(args.query, ward, args.method)
    if not records:
        console.print(f"No voters found in ward {ward}")
        return 1
    if args.chat:
        console.print(format_results_message(records, ward, args.chat, limit=config.search.chat_results))
    else:
        console.print(render_records(records, f"Voters matching {args.query!r} in ward {ward}"))
    return 0


def cmd_details(args, config) -> int:
    ward = validate_ward(args.ward, config.wards.all_wards())
    details = build_service(config).get_voter_details(args.epic, ward)
    record = details.record
    console.print(f"[bold]{record.full_name}[/bold] ({record.epic_number})")
    console.print(f"Age: {record.age}  Gender: {record.gender}  Part: {record.part_no}  Sr No: {record.sr_no}")
    console.print(f"Polling station: {details.polling_station}")
    console.print(f"Polling address: {details.polling_address}")
    return 0


def cmd_check(args, config) -> int:
    service = build_service(config)
    if service.trigram_available():
        console.print(f"✅ {config.search.trigram_extension} available: fuzzy name search enabled")
    else:
        console.print(f"⚠️ {config.search.trigram_extension} missing: name search uses substring patterns")
    return 0


def cmd_serve(args, config) -> int:
    import uvicorn

    from .api import create_app

    uvicorn.run(create_app(config=config), host=args.host or config.api_host, port=args.port or config.api_port)
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Voter Lookup")
    sub = parser.add_subparsers(dest="command", required=True)

    search = sub.add_parser("search", help="Search voters in a ward")
    search.add_argument("--ward", required=True)
    search.add_argument("--query", required=True)
    search.add_argument(
        "--method",
        default=SearchMethod.NAME.value,
        choices=[m.value for m in SearchMethod],
    )
    search.add_argument(
        "--chat",
        metavar="LANGUAGE",
        help="Print the chat reply (english, hindi or marathi) instead of a table",
    )
    search.set_defaults(func=cmd_search)

    details = sub.add_parser("details", help="Show voter slip details")
    details.add_argument("--ward", required=True)
    details.add_argument("--epic", required=True)
    details.set_defaults(func=cmd_details)

    check = sub.add_parser("check", help="Report whether fuzzy search is available")
    check.set_defaults(func=cmd_check)

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host")
    serve.add_argument("--port", type=int)
    serve.set_defaults(func=cmd_serve)

    args = parser.parse_args(argv)
    config = get_config()

    try:
        return args.func(args, config)
    except VoterLookupError as e:
        logger.error(f"❌ {e}")
        return 2


if __name__ == "__main__":
    sys.exit(main())
