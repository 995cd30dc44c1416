# fetchers/__init__.py
from urllib.parse import urlparse

from . import metadata
from . import shopee

# Storefronts whose pages cannot be scraped; items are named from the URL instead
STOREFRONTS = {
    shopee.HOST: shopee,
}


def find_storefront(url: str):
    """Return the storefront module handling this URL's host, or None."""
    try:
        host = (urlparse(url).hostname or "").lower()
    except ValueError:
        return None
    for domain, module in STOREFRONTS.items():
        if host == domain or host.endswith("." + domain):
            return module
    return None
