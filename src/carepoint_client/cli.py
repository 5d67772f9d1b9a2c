from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from carepoint_client.api import CarePointAPIError
from carepoint_client.app import CarePointApp
from carepoint_client.core.settings import get_settings
from carepoint_client.scheduling.slots import effective_status

logger = logging.getLogger(__name__)


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="carepoint", description="CarePoint API client")
    commands = parser.add_subparsers(dest="command", required=True)

    medicines = commands.add_parser("medicines", help="List a catalog page")
    medicines.add_argument("--page", type=int, default=1)
    medicines.add_argument("--category", default="all")
    medicines.add_argument("--search", default="")
    medicines.add_argument("--sort-by", default="name")
    medicines.add_argument("--sort-order", choices=("asc", "desc"), default="asc")

    commands.add_parser("categories", help="List medicine categories")

    slots = commands.add_parser("slots", help="List bookable lab slots for a date")
    slots.add_argument("date", help="YYYY-MM-DD")

    commands.add_parser("bookings", help="List lab bookings with their effective status")
    commands.add_parser("cart", help="Show the cart")
    return parser.parse_args(argv)


async def run(args: argparse.Namespace) -> int:
    async with CarePointApp(get_settings()) as app:
        errors_before = len(app.feedback.errors)

        if args.command == "medicines":
            filters = {
                "category": args.category,
                "search": args.search,
                "sortBy": args.sort_by,
                "sortOrder": args.sort_order,
            }
            await app.medicines.fetch_list(args.page, filters)
            state = app.medicines.state
            _emit(
                {
                    "medicines": [
                        medicine.model_dump(mode="json", by_alias=True)
                        for medicine in state.medicines
                    ],
                    "pagination": state.pagination.model_dump(mode="json", by_alias=True),
                }
            )
        elif args.command == "categories":
            await app.medicines.fetch_categories()
            _emit(app.medicines.state.categories)
        elif args.command == "slots":
            available = await app.lab.fetch_time_slots(args.date)
            _emit([slot.label for slot in available])
        elif args.command == "bookings":
            bookings = await app.lab.fetch_bookings()
            now = datetime.now()
            _emit(
                [
                    {
                        **booking.model_dump(mode="json", by_alias=True),
                        "effectiveStatus": effective_status(booking, now),
                    }
                    for booking in bookings
                ]
            )
        elif args.command == "cart":
            cart = await app.cart.fetch_cart()
            _emit(cart.model_dump(mode="json", by_alias=True))

        return 1 if len(app.feedback.errors) > errors_before else 0


def _emit(data: Any) -> None:
    json.dump(data, sys.stdout, indent=2)
    sys.stdout.write("\n")


def main(argv: Sequence[str] | None = None) -> None:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level, format="[%(levelname)s] %(name)s: %(message)s"
    )
    args = parse_args(sys.argv[1:] if argv is None else argv)
    try:
        code = asyncio.run(run(args))
    except CarePointAPIError as exc:
        logger.error("CarePoint request failed: %s", exc)
        code = 1
    raise SystemExit(code)


if __name__ == "__main__":
    main()
