# fetchers/metadata.py
import os
import re
import time
from dataclasses import dataclass
from typing import Any, Optional

import requests
from bs4 import BeautifulSoup

from core.logger import get_logger

logger = get_logger(__name__)

USER_AGENT = os.getenv(
    "EXTRACT_USER_AGENT",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10.15; rv:145.0) "
    "Gecko/20100101 Firefox/145.0",
)
EXTRACT_TIMEOUT = float(os.getenv("EXTRACT_TIMEOUT", "5"))
FETCH_CHUNK_SIZE = 16 * 1024

SESSION = requests.Session()

# Peso amounts such as ₱400.00, ₱123, ₱ 1,234.56
PRICE_RE = re.compile(r"₱\s*[\d,]+(?:\.\d+)?")
_PRICE_NOISE_RE = re.compile(r"₱|\s|,")

# Structured og:image:* properties that attach to the preceding og:image
_IMAGE_PROPS = ("url", "secure_url", "type", "width", "height", "alt")


@dataclass
class ExtractionResult:
    """
    Outcome of one metadata extraction.
    success=False means the fetch failed; None fields on a successful result
    just mean nothing was found.
    """
    success: bool
    url: str
    html: Optional[str] = None
    price_raw: Optional[str] = None
    price_number: Optional[float] = None
    og: Optional[dict[str, Any]] = None
    error: Optional[str] = None

    @classmethod
    def create_error(cls, url: str, error_message: str) -> "ExtractionResult":
        return cls(success=False, url=url, error=error_message)


def fetch_html(url: str) -> str:
    """
    GET a page as text within EXTRACT_TIMEOUT seconds overall. The requests
    timeout only bounds each connect and read, so the body is streamed
    against a deadline.
    """
    deadline = time.monotonic() + EXTRACT_TIMEOUT
    with SESSION.get(
        url,
        headers={"User-Agent": USER_AGENT},
        timeout=EXTRACT_TIMEOUT,
        stream=True,
    ) as resp:
        resp.raise_for_status()
        chunks = []
        for chunk in resp.iter_content(chunk_size=FETCH_CHUNK_SIZE):
            chunks.append(chunk)
            if time.monotonic() > deadline:
                raise requests.Timeout(f"Timed out after {EXTRACT_TIMEOUT:g}s reading {url}")
        body = b"".join(chunks)
        encoding = resp.encoding or resp.apparent_encoding or "utf-8"
    return body.decode(encoding, errors="replace")


def extract_price(html: str) -> tuple[Optional[str], Optional[float]]:
    """First peso amount in document order, as (matched text, number)."""
    m = PRICE_RE.search(html or "")
    if not m:
        return None, None

    price_raw = m.group(0)
    numeric = _PRICE_NOISE_RE.sub("", price_raw)
    try:
        return price_raw, float(numeric)
    except ValueError:
        logger.debug("Unparseable price token %r", price_raw)
        return price_raw, None


def _og_properties(soup: BeautifulSoup) -> list[tuple[str, str]]:
    props: list[tuple[str, str]] = []
    for meta in soup.find_all("meta"):
        key = meta.get("property") or meta.get("name")
        content = meta.get("content")
        if not isinstance(key, str) or not isinstance(content, str):
            continue
        key = key.strip().lower()
        if not key.startswith("og:"):
            continue
        props.append((key[3:], content.strip()))
    return props


def extract_open_graph(html: str) -> dict[str, Any]:
    """
    Collect og:* meta tags into a dict keyed by property name without the
    "og:" prefix.

    The image entry keeps the page's shape: a lone og:image is a string, an
    og:image followed by og:image:* properties is a dict with "url", and
    several images become a list of those.
    """
    soup = BeautifulSoup(html or "", "html.parser")
    og: dict[str, Any] = {}
    images: list[Any] = []

    for key, content in _og_properties(soup):
        if key == "image":
            images.append(content)
            continue

        if key.startswith("image:"):
            sub = key.split(":", 1)[1]
            if sub not in _IMAGE_PROPS:
                continue
            if sub == "url" and not images:
                images.append(content)
                continue
            if not images:
                # structured property with no image to attach to
                continue
            current = images[-1]
            if isinstance(current, str):
                current = {"url": current}
                images[-1] = current
            current.setdefault(sub, content)
            continue

        # First occurrence wins for scalar properties
        og.setdefault(key, content)

    if len(images) == 1:
        og["image"] = images[0]
    elif images:
        og["image"] = images

    return og


def extract_metadata_from_url(url: str) -> ExtractionResult:
    """
    Fetch a product page and pull a peso price and Open Graph metadata out
    of it. Never raises; fetch failures come back with success=False.
    """
    try:
        html = fetch_html(url)
        price_raw, price_number = extract_price(html)
        og = extract_open_graph(html)
    except Exception as e:
        logger.warning("Metadata extraction failed for %s: %s", url, e)
        return ExtractionResult.create_error(url, str(e) or e.__class__.__name__)

    logger.info(
        "Extracted metadata for %s: price=%s, og_keys=%s",
        url,
        price_raw,
        sorted(og),
    )
    return ExtractionResult(
        success=True,
        url=url,
        html=html,
        price_raw=price_raw,
        price_number=price_number,
        og=og,
    )
