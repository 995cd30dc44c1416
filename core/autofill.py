# core/autofill.py
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

import fetchers
from fetchers import metadata

from .logger import get_logger
from .models import ItemDraft
from .money import MonetaryAmount

logger = get_logger(__name__)

PRICE_MAY_DIFFER_WARNING = (
    "The price filled below might differ from the price at the platform. "
    "Please check the current price at the platform and adjust accordingly."
)


class ImageShape(Enum):
    """The four shapes an og:image value can take."""
    URL = "url"
    DESCRIPTOR = "descriptor"
    URL_LIST = "url_list"
    DESCRIPTOR_LIST = "descriptor_list"


def classify_image(image: Any) -> Optional[ImageShape]:
    if isinstance(image, str):
        return ImageShape.URL
    if isinstance(image, dict):
        return ImageShape.DESCRIPTOR
    if isinstance(image, list) and image:
        first = image[0]
        if isinstance(first, str):
            return ImageShape.URL_LIST
        if isinstance(first, dict):
            return ImageShape.DESCRIPTOR_LIST
    return None


def resolve_image_url(image: Any) -> Optional[str]:
    """Reduce any og:image shape to a single URL (the first one for lists)."""
    shape = classify_image(image)
    if shape is ImageShape.URL:
        url = image
    elif shape is ImageShape.DESCRIPTOR:
        url = image.get("url")
    elif shape is ImageShape.URL_LIST:
        url = image[0]
    elif shape is ImageShape.DESCRIPTOR_LIST:
        url = image[0].get("url")
    else:
        return None
    return url if isinstance(url, str) and url else None


@dataclass
class ItemCandidates:
    """
    Best-effort field values for an item draft derived from a product URL.
    None means "nothing produced", so the draft keeps whatever it had.
    """
    name: Optional[str] = None
    price: Optional[float] = None
    image_url: Optional[str] = None
    success: bool = True
    error: Optional[str] = None
    requires_manual_entry: bool = False
    warnings: list[str] = field(default_factory=list)

    @property
    def price_minor_units(self) -> Optional[int]:
        if self.price is None:
            return None
        return MonetaryAmount(self.price).to_integer()

    def apply_to(self, draft: ItemDraft) -> ItemDraft:
        if self.name is not None:
            draft.name = self.name
        if self.price is not None:
            draft.price = self.price_minor_units
        if self.image_url is not None:
            draft.image_url = self.image_url
        return draft


def requires_manual_entry(url: str) -> bool:
    return bool(url) and fetchers.find_storefront(url) is not None


def candidates_for_url(url: str) -> ItemCandidates:
    """
    Route a pasted product URL: known unscrapeable storefronts get a name
    from the URL path only, everything else goes through metadata extraction.
    """
    storefront = fetchers.find_storefront(url)
    if storefront is not None:
        name = storefront.name_from_url(url)
        logger.info("Storefront URL %s needs manual entry; derived name %r", url, name)
        return ItemCandidates(
            name=name or None,
            requires_manual_entry=True,
            warnings=[storefront.MANUAL_ENTRY_WARNING],
        )

    result = metadata.extract_metadata_from_url(url)
    if not result.success:
        return ItemCandidates(success=False, error=result.error)

    og = result.og or {}
    title = og.get("title")
    candidates = ItemCandidates(
        name=title if isinstance(title, str) and title else None,
        price=result.price_number,
        image_url=resolve_image_url(og.get("image")),
    )
    candidates.warnings.append(PRICE_MAY_DIFFER_WARNING)
    return candidates


class ItemAutoFill:
    """
    Fills an item draft from its product link.

    Every blur or paste re-runs the lookup; there is no caching, and when
    calls overlap the last one to finish writes the draft.
    """

    def __init__(self, draft: Optional[ItemDraft] = None):
        self.draft = draft if draft is not None else ItemDraft()
        self.last_candidates: Optional[ItemCandidates] = None

    def propagate_from_url(self, url: str) -> Optional[ItemCandidates]:
        url = (url or "").strip()
        if not url:
            return None

        self.draft.original_link = url
        candidates = candidates_for_url(url)
        candidates.apply_to(self.draft)
        self.last_candidates = candidates
        return candidates

    def on_blur(self, url: str) -> Optional[ItemCandidates]:
        return self.propagate_from_url(url)

    def on_paste(self, pasted: str) -> Optional[ItemCandidates]:
        return self.propagate_from_url(pasted)
