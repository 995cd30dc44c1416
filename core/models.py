# core/models.py
from dataclasses import dataclass
from typing import Any, Optional


@dataclass
class User:
    id: int
    email: str
    name: str = ""
    image: str = ""
    birthdate: str = ""
    gcash_qr_url: Optional[str] = None


@dataclass
class Wishlist:
    id: int
    user_id: int
    name: str
    share_id: str
    created_at: str = ""


@dataclass
class WishlistItem:
    """
    A persisted wishlist entry.
    Prices are stored in minor units (centavos); None means no price entered.
    """
    id: int
    wishlist_id: int
    name: str
    price: Optional[int] = None
    image_url: Optional[str] = None
    original_link: str = ""
    notes: str = ""
    created_at: str = ""


@dataclass
class ItemDraft:
    """In-progress item being edited before it is saved."""
    name: str = ""
    price: Optional[int] = None
    image_url: Optional[str] = None
    original_link: str = ""
    notes: str = ""
    id: Optional[int] = None

    def as_fields(self) -> dict[str, Any]:
        fields: dict[str, Any] = {
            "price": self.price,
            "image_url": self.image_url,
            "original_link": self.original_link,
            "notes": self.notes,
        }
        if self.name:
            fields["name"] = self.name
        if self.id is not None:
            fields["id"] = self.id
        return fields


@dataclass
class Reservation:
    id: int
    item_id: Optional[int]
    user_id: Optional[int]
    giver_session_id: str
    giver_nickname: str = ""
    giver_email: str = ""
    giver_message: str = ""
    giver_amount: int = 0
    is_purchased: bool = True
    reserved_at: str = ""
    item: Optional[WishlistItem] = None

    @property
    def is_cash_gift(self) -> bool:
        return bool(self.giver_amount)


@dataclass
class ActionResult:
    """Outcome of a storage action; expected failures carry a reason instead of raising."""
    success: bool
    reason: str = ""
    data: Any = None
