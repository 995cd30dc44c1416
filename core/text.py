# core/text.py
import os
import re

APP_BASE_URL = os.getenv("APP_BASE_URL", "https://gustoko.ng").rstrip("/")
SITE_NAME = "gustoko.ng"

_SLUG_RE = re.compile(r"[^a-z0-9]+")


def pluralize(word: str, count: int) -> str:
    if count == 1:
        return word
    if word.endswith(("s", "x", "z", "ch", "sh")):
        return word + "es"
    return word + "s"


def slugify(value: str) -> str:
    """Lowercase, with every run of non-alphanumerics collapsed to one hyphen."""
    return _SLUG_RE.sub("-", (value or "").lower()).strip("-")


def possessive_wishlist_name(raw_name: str | None) -> str:
    """
    "Ana" -> "Ana's Wishlist", "Chris" -> "Chris' Wishlist",
    no name -> "Wishlist".
    """
    name = (raw_name or "").strip()
    if not name:
        return "Wishlist"
    last = name[-1]
    if last in ("'", "’"):
        return f"{name} Wishlist"
    if last in ("s", "S"):
        return f"{name}' Wishlist"
    return f"{name}'s Wishlist"


def wishlist_share_url(share_id: str, base_url: str | None = None) -> str:
    base = (base_url or APP_BASE_URL).rstrip("/")
    return f"{base}/wishlist/{share_id}"


def wishlist_page_title(wishlist_name: str | None) -> str:
    return f"{wishlist_name or 'Wishlist'} - {SITE_NAME}"
