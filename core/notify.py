# core/notify.py
import os
from pathlib import Path
from typing import Any, Dict, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from .emailer import send_email
from .logger import get_logger
from .models import Reservation, User, Wishlist
from .money import MonetaryAmount
from .text import wishlist_share_url

logger = get_logger(__name__)

# Resolve template directory relative to this file
TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"
env = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=select_autoescape(["html"]),
)

EMAIL_THEME = os.getenv("EMAIL_THEME", "light").strip().lower()
if EMAIL_THEME not in ("light", "dark"):
    EMAIL_THEME = "light"

THEMES = {
    "light": {
        "page_bg": "#f5f5f5",
        "card_bg": "#ffffff",
        "card_border": "#e0e0e0",
        "text_primary": "#202124",
        "text_secondary": "#555",
        "text_muted": "#999",
        "accent": "#2e7d32",
        "link_color": "#1a73e8",
    },
    "dark": {
        "page_bg": "#121212",
        "card_bg": "#1E1E1E",
        "card_border": "#333333",
        "text_primary": "#F1F1F1",
        "text_secondary": "#BBBBBB",
        "text_muted": "#777777",
        "accent": "#4CAF50",
        "link_color": "#8AB4F8",
    },
}


def _cents_to_str(cents: Optional[int]) -> str:
    if not cents:
        return ""
    return MonetaryAmount.from_integer(cents).format()


def build_context(reservation: Reservation, owner: User, wishlist: Wishlist) -> Dict[str, Any]:
    item = reservation.item
    giver = reservation.giver_nickname or "Someone"
    if reservation.is_cash_gift:
        headline = f"{giver} sent you {_cents_to_str(reservation.giver_amount)}"
    elif item is not None:
        headline = f"{giver} reserved {item.name}"
    else:
        headline = f"{giver} sent you a gift"

    return {
        "owner_name": owner.name or owner.email,
        "wishlist_name": wishlist.name,
        "share_url": wishlist_share_url(wishlist.share_id),
        "headline": headline,
        "giver": giver,
        "message": reservation.giver_message,
        "amount_str": _cents_to_str(reservation.giver_amount),
        "is_cash_gift": reservation.is_cash_gift,
        "item": {
            "name": item.name,
            "price_str": _cents_to_str(item.price) or "N/A",
            "image_url": item.image_url or "",
            "original_link": item.original_link,
        } if item is not None else None,
        "reserved_at": reservation.reserved_at,
    }


def build_plaintext_notification(reservation: Reservation, owner: User, wishlist: Wishlist) -> str:
    template = env.get_template("gift_text.txt")
    return template.render(**build_context(reservation, owner, wishlist))


def build_html_notification(reservation: Reservation, owner: User, wishlist: Wishlist) -> str:
    template = env.get_template("gift.html")
    ctx = build_context(reservation, owner, wishlist)
    ctx["colors"] = THEMES[EMAIL_THEME]
    ctx["title"] = f"New gift on {wishlist.name}"
    return template.render(**ctx)


def notify_owner(reservation: Reservation, owner: User, wishlist: Wishlist) -> bool:
    """Email the wishlist owner about a reservation or cash gift."""
    if not owner.email:
        logger.warning("Owner of wishlist %s has no email; skipping notification.", wishlist.share_id)
        return False

    ctx_headline = build_context(reservation, owner, wishlist)["headline"]
    subject = f"[gustoko.ng] {ctx_headline}"
    html_body = build_html_notification(reservation, owner, wishlist)
    text_body = build_plaintext_notification(reservation, owner, wishlist)
    return send_email(subject, html_body, text_body, [owner.email])
