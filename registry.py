import argparse
import json
import sys
from dataclasses import asdict
from typing import List, Optional

from core.logger import get_logger
from core import storage
from core.autofill import ItemAutoFill, candidates_for_url
from core.models import ItemDraft
from core.money import MonetaryAmount
from core.notify import notify_owner
from core.text import pluralize, wishlist_share_url

logger = get_logger(__name__)


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False, default=str))


def _price_str(cents: Optional[int]) -> str:
    return MonetaryAmount.from_integer(cents).format() if cents else "N/A"


def cmd_extract(args: argparse.Namespace) -> int:
    candidates = candidates_for_url(args.url)
    payload = asdict(candidates)
    payload["price_minor_units"] = candidates.price_minor_units
    _print_json(payload)
    return 0 if candidates.success else 1


def cmd_create_user(args: argparse.Namespace) -> int:
    user = storage.create_user(args.email, name=args.name or "")
    for wl in storage.list_user_wishlists(user.id):
        print(f"{wl.name}: {wishlist_share_url(wl.share_id)}")
    return 0


def cmd_add_item(args: argparse.Namespace) -> int:
    autofill = ItemAutoFill(ItemDraft(notes=args.notes or ""))
    candidates = autofill.on_paste(args.url)
    if candidates is not None:
        if not candidates.success:
            logger.warning(
                "Could not load details for %s (%s); please fill them in manually.",
                args.url,
                candidates.error,
            )
        for warning in candidates.warnings:
            logger.warning("%s", warning)

    if args.name:
        autofill.draft.name = args.name
    if args.price is not None:
        autofill.draft.price = MonetaryAmount(args.price).to_integer()

    res = storage.upsert_wishlist_item_by_share_id(args.share_id, autofill.draft)
    if not res.success:
        logger.error("Could not add item to %s: %s", args.share_id, res.reason)
        return 1

    item = res.data
    print(f"Added #{item.id}: {item.name} ({_price_str(item.price)})")
    return 0


def cmd_items(args: argparse.Namespace) -> int:
    items = storage.list_wishlist_items(args.share_id)
    if items is None:
        logger.error("Cannot find wishlist %s", args.share_id)
        return 1

    print(f"{len(items)} {pluralize('item', len(items))}")
    for it in items:
        print(f"#{it.id}  {it.name}  {_price_str(it.price)}  {it.original_link}")
    return 0


def cmd_reserve(args: argparse.Namespace) -> int:
    amount = MonetaryAmount(args.amount).to_integer() if args.amount else 0
    res = storage.reserve_item(
        args.item_id,
        nickname=args.nickname or "",
        email=args.email or "",
        message=args.message or "",
        amount=amount,
        session_id=args.session_id,
    )
    if not res.success:
        logger.error("%s", res.reason)
        return 1

    reservation = res.data
    print(f"Reserved (session {reservation.giver_session_id})")

    owner = storage.get_item_owner(reservation.item_id) if reservation.item_id else None
    if owner is not None:
        notify_owner(reservation, *owner)
    return 0


def cmd_reservations(args: argparse.Namespace) -> int:
    user = storage.get_user_by_email(args.email)
    if user is None:
        logger.error("No user with email %s", args.email)
        return 1

    for r in storage.list_reservations_for_owner(user.id):
        what = _price_str(r.giver_amount) if r.is_cash_gift else (r.item.name if r.item else "")
        line = f"{r.reserved_at}  {r.giver_nickname or 'Anonymous'}  {what}"
        if r.giver_message:
            line += f'  "{r.giver_message}"'
        print(line)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="registry", description="gusto-ko wishlist registry tools")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("extract", help="Show item details derived from a product link")
    p.add_argument("url")
    p.set_defaults(func=cmd_extract)

    p = sub.add_parser("create-user", help="Register a user and their default wishlist")
    p.add_argument("email")
    p.add_argument("--name")
    p.set_defaults(func=cmd_create_user)

    p = sub.add_parser("add-item", help="Add a product link to a wishlist")
    p.add_argument("share_id")
    p.add_argument("url")
    p.add_argument("--name")
    p.add_argument("--price", help="Price in pesos, e.g. 1,299.50")
    p.add_argument("--notes")
    p.set_defaults(func=cmd_add_item)

    p = sub.add_parser("items", help="List the items of a shared wishlist")
    p.add_argument("share_id")
    p.set_defaults(func=cmd_items)

    p = sub.add_parser("reserve", help="Reserve an item or send a cash gift")
    p.add_argument("item_id")
    p.add_argument("--nickname")
    p.add_argument("--email")
    p.add_argument("--message")
    p.add_argument("--amount", help="Cash gift in pesos")
    p.add_argument("--session-id")
    p.set_defaults(func=cmd_reserve)

    p = sub.add_parser("reservations", help="List gifts received by a wishlist owner")
    p.add_argument("email")
    p.set_defaults(func=cmd_reservations)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    storage.ensure_db()
    return args.func(args)


def run(argv: Optional[List[str]] = None) -> None:
    """Console entry point: exit with main()'s code, or 2 on an unexpected error."""
    try:
        code = main(sys.argv[1:] if argv is None else argv)
    except Exception as e:
        logger.exception("Fatal registry error: %s", e)
        raise SystemExit(2)
    raise SystemExit(code)


if __name__ == "__main__":
    run()
