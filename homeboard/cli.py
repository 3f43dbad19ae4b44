"""
Command-line entry point: browse, add and delete homes, or run the API server.
"""

from __future__ import annotations

import argparse
import logging
from typing import Optional, Sequence

from homeboard.board import BoardApp, HomeForm
from homeboard.client import HomeBoardClient
from homeboard.config import get_settings

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="homeboard", description="HomeBoard listings")
    parser.add_argument(
        "--api-url",
        type=str,
        default=None,
        help="Override the API base URL (default: HOMEBOARD_API_URL)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("list", help="List all homes, newest first")

    show = sub.add_parser("show", help="Show one home")
    show.add_argument("home_id")

    add = sub.add_parser("add", help="Upload media and add a home")
    add.add_argument("--title", required=True)
    add.add_argument("--address", required=True)
    add.add_argument("--price", required=True)
    add.add_argument("--size", required=True)
    add.add_argument("--deposit", default="")
    add.add_argument("--listing-url", default="")
    add.add_argument("--maps-url", default="")
    add.add_argument("--notes", default="")
    add.add_argument(
        "--media",
        action="append",
        default=[],
        metavar="PATH",
        help="Photo or video to attach (repeatable)",
    )

    delete = sub.add_parser("delete", help="Delete a home and its media")
    delete.add_argument("home_id")

    sub.add_parser("serve", help="Run the HTTP API")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
        datefmt="%m/%d/%Y %I:%M:%S %p",
    )

    if args.command == "serve":
        from homeboard.app import main as serve

        serve()
        return 0

    board = BoardApp(client=HomeBoardClient(args.api_url))
    board.load()
    ok = board.error is None

    if ok and args.command == "show":
        board.open_detail(args.home_id)
    elif ok and args.command == "add":
        board.open_add()
        form = HomeForm(
            title=args.title,
            address=args.address,
            price=args.price,
            deposit=args.deposit,
            size=args.size,
            listing_url=args.listing_url,
            google_maps_url=args.maps_url,
            notes=args.notes,
        )
        ok = board.submit_new_home(form, args.media)
    elif ok and args.command == "delete":
        ok = board.delete_home(args.home_id)

    print(board.render())
    if args.command == "show" and board.selected_home() is None:
        return 1
    return 0 if ok else 1


if __name__ == "__main__":
    raise SystemExit(main())
