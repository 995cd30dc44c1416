# fetchers/shopee.py
import re
from urllib.parse import urlparse

HOST = "shopee.ph"

MANUAL_ENTRY_WARNING = (
    "Shopee links do not let us grab the product's price and image. "
    "You can add a screenshot of the product or enter the price and image manually."
)

# Shopee product slugs end with "-i.<shop id>.<item id>"
_PRODUCT_ID_SUFFIX_RE = re.compile(r"-i\.\d+.*")


def name_from_url(url: str) -> str:
    """
    Derive an item name from a Shopee product URL.

    https://shopee.ph/some-cool-gadget-i.123456?foo=bar -> "some cool gadget"
    """
    segments = urlparse(url).path.split("/")
    slug = segments[1] if len(segments) > 1 else ""
    slug = _PRODUCT_ID_SUFFIX_RE.sub("", slug)
    return slug.replace("-", " ")
