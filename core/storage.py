# core/storage.py
import os
import sqlite3
import datetime
import uuid
import pytz
from typing import Any, Dict, List, Optional, Tuple

from .models import ActionResult, ItemDraft, Reservation, User, Wishlist, WishlistItem
from .text import possessive_wishlist_name, slugify
from .logger import get_logger

logger = get_logger(__name__)

DB_PATH = os.getenv("DB_PATH", "/data/gusto_ko.sqlite3")

DEFAULT_ITEM_NAME = "Wishlist Item"
SHARE_ID_MAX_ATTEMPTS = 6

ITEM_FIELDS = ("name", "price", "image_url", "original_link", "notes")
USER_FIELDS = ("name", "image", "birthdate", "gcash_qr_url")


def _connect():
    os.makedirs(os.path.dirname(DB_PATH) or ".", exist_ok=True)
    con = sqlite3.connect(DB_PATH)
    con.row_factory = sqlite3.Row
    con.execute("PRAGMA foreign_keys = ON")
    return con


def now_utc_iso() -> str:
    return datetime.datetime.now(tz=pytz.UTC).isoformat()


def ensure_db():
    with _connect() as con:
        cur = con.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS users (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                email TEXT UNIQUE NOT NULL,
                name TEXT,
                image TEXT,
                birthdate TEXT,
                gcash_qr_url TEXT,
                created_at TEXT
            )
        """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS wishlists (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                name TEXT NOT NULL,
                share_id TEXT UNIQUE NOT NULL,
                created_at TEXT
            )
        """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS wishlist_items (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                wishlist_id INTEGER NOT NULL REFERENCES wishlists(id) ON DELETE CASCADE,
                name TEXT NOT NULL,
                price INTEGER,          -- minor units (centavos)
                image_url TEXT,
                original_link TEXT,
                notes TEXT,
                created_at TEXT
            )
        """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS reservations (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                item_id INTEGER REFERENCES wishlist_items(id) ON DELETE SET NULL,
                user_id INTEGER REFERENCES users(id) ON DELETE SET NULL,
                giver_session_id TEXT NOT NULL,
                giver_nickname TEXT,
                giver_email TEXT,
                giver_message TEXT,
                giver_amount INTEGER NOT NULL DEFAULT 0,   -- minor units
                is_purchased INTEGER NOT NULL DEFAULT 1,
                reserved_at TEXT
            )
        """
        )
        con.commit()


# --- row mapping ---

def _user_from_row(row: sqlite3.Row) -> User:
    return User(
        id=row["id"],
        email=row["email"],
        name=row["name"] or "",
        image=row["image"] or "",
        birthdate=row["birthdate"] or "",
        gcash_qr_url=row["gcash_qr_url"],
    )


def _wishlist_from_row(row: sqlite3.Row) -> Wishlist:
    return Wishlist(
        id=row["id"],
        user_id=row["user_id"],
        name=row["name"],
        share_id=row["share_id"],
        created_at=row["created_at"] or "",
    )


def _item_from_row(row: sqlite3.Row) -> WishlistItem:
    return WishlistItem(
        id=row["id"],
        wishlist_id=row["wishlist_id"],
        name=row["name"],
        price=row["price"],
        image_url=row["image_url"],
        original_link=row["original_link"] or "",
        notes=row["notes"] or "",
        created_at=row["created_at"] or "",
    )


def _reservation_from_row(row: sqlite3.Row) -> Reservation:
    return Reservation(
        id=row["id"],
        item_id=row["item_id"],
        user_id=row["user_id"],
        giver_session_id=row["giver_session_id"],
        giver_nickname=row["giver_nickname"] or "",
        giver_email=row["giver_email"] or "",
        giver_message=row["giver_message"] or "",
        giver_amount=row["giver_amount"] or 0,
        is_purchased=bool(row["is_purchased"]),
        reserved_at=row["reserved_at"] or "",
    )


# --- users ---

def get_user_by_email(email: str) -> Optional[User]:
    with _connect() as con:
        row = con.execute(
            "SELECT id, email, name, image, birthdate, gcash_qr_url FROM users WHERE email=?",
            (email,),
        ).fetchone()
    return _user_from_row(row) if row else None


def get_user(user_id: int) -> Optional[User]:
    with _connect() as con:
        row = con.execute(
            "SELECT id, email, name, image, birthdate, gcash_qr_url FROM users WHERE id=?",
            (user_id,),
        ).fetchone()
    return _user_from_row(row) if row else None


def create_user(email: str, name: str = "", image: str = "") -> User:
    """
    Insert a user and give them their default wishlist.
    Raises sqlite3.IntegrityError if the email is already registered.
    """
    with _connect() as con:
        cur = con.execute(
            "INSERT INTO users (email, name, image, created_at) VALUES (?,?,?,?)",
            (email, name, image, now_utc_iso()),
        )
        user_id = cur.lastrowid
        con.commit()

    user = User(id=user_id, email=email, name=name or "", image=image or "")
    logger.info("Created user %s (id=%d)", email, user_id)
    create_default_wishlist(user)
    return user


def _update_user_fields(email: str, fields: Dict[str, Any]) -> Optional[User]:
    unknown = set(fields) - set(USER_FIELDS)
    if unknown:
        raise ValueError(f"Unknown user fields: {sorted(unknown)}")
    if fields:
        assignments = ", ".join(f"{k}=?" for k in fields)
        with _connect() as con:
            con.execute(
                f"UPDATE users SET {assignments} WHERE email=?",
                (*fields.values(), email),
            )
            con.commit()
    return get_user_by_email(email)


def update_user(email: Optional[str], **fields) -> ActionResult:
    """Update the signed-in user's profile; email identifies the session user."""
    if not email:
        return ActionResult(success=False, reason="User not authenticated")
    try:
        user = _update_user_fields(email, fields)
    except sqlite3.Error as e:
        logger.error("Error updating user %s: %s", email, e)
        return ActionResult(success=False, reason="Failed to update user")
    if user is None:
        logger.error("Error updating user %s: no such user", email)
        return ActionResult(success=False, reason="Failed to update user")
    return ActionResult(success=True, data=user)


def update_user_gcash_qr_url(email: Optional[str], gcash_qr_url: str) -> ActionResult:
    if not email:
        return ActionResult(success=False, reason="User not authenticated")
    try:
        user = _update_user_fields(email, {"gcash_qr_url": gcash_qr_url})
    except sqlite3.Error as e:
        logger.error("Error updating GCash QR URL for %s: %s", email, e)
        user = None
    if user is None:
        return ActionResult(success=False, reason="Failed to update GCash QR URL")
    return ActionResult(success=True, data=user)


def remove_user_gcash_qr_url(email: Optional[str]) -> ActionResult:
    if not email:
        return ActionResult(success=False, reason="User not authenticated")
    try:
        user = _update_user_fields(email, {"gcash_qr_url": None})
    except sqlite3.Error as e:
        logger.error("Error removing GCash QR URL for %s: %s", email, e)
        user = None
    if user is None:
        return ActionResult(success=False, reason="Failed to remove GCash QR URL")
    return ActionResult(success=True, data=user)


# --- wishlists ---

def _share_id_taken(con: sqlite3.Connection, share_id: str) -> bool:
    row = con.execute("SELECT 1 FROM wishlists WHERE share_id=?", (share_id,)).fetchone()
    return row is not None


def _share_id_base(con: sqlite3.Connection, user: User) -> str:
    """Prefer the user's name; fall back to the (unique) email when that is taken."""
    name_slug = slugify(user.name)
    email_base = f"{slugify(user.email) or user.id}-wishlist"
    if not name_slug:
        return email_base
    name_base = f"{name_slug}-wishlist"
    return email_base if _share_id_taken(con, name_base) else name_base


def create_default_wishlist(user: User) -> Optional[Wishlist]:
    """
    Create the first wishlist for a new user. Does nothing when the user
    already has one.
    """
    with _connect() as con:
        existing = con.execute(
            "SELECT COUNT(*) FROM wishlists WHERE user_id=?", (user.id,)
        ).fetchone()[0]
        if existing:
            logger.debug("User %s already has %d wishlists; skipping default.", user.email, existing)
            return None

        base = _share_id_base(con, user)
        share_id = base
        suffix = 1
        while _share_id_taken(con, share_id):
            share_id = f"{base}-{suffix}"
            suffix += 1

        name = possessive_wishlist_name(user.name)
        ts = now_utc_iso()
        for attempt in range(SHARE_ID_MAX_ATTEMPTS):
            try:
                cur = con.execute(
                    "INSERT INTO wishlists (user_id, name, share_id, created_at) VALUES (?,?,?,?)",
                    (user.id, name, share_id, ts),
                )
                con.commit()
                break
            except sqlite3.IntegrityError:
                # another writer grabbed this share id first
                logger.debug("Share id %s taken on attempt %d; retrying.", share_id, attempt + 1)
                share_id = f"{base}-{suffix}"
                suffix += 1
        else:
            logger.error("Could not allocate a share id for user %s", user.email)
            return None

    logger.info("Created wishlist '%s' (%s) for %s", name, share_id, user.email)
    return Wishlist(id=cur.lastrowid, user_id=user.id, name=name, share_id=share_id, created_at=ts)


def get_wishlist_by_share_id(share_id: str) -> Optional[Wishlist]:
    with _connect() as con:
        row = con.execute(
            "SELECT id, user_id, name, share_id, created_at FROM wishlists WHERE share_id=?",
            (share_id,),
        ).fetchone()
    return _wishlist_from_row(row) if row else None


def list_user_wishlists(user_id: int) -> List[Wishlist]:
    with _connect() as con:
        rows = con.execute(
            """
            SELECT id, user_id, name, share_id, created_at FROM wishlists
            WHERE user_id=? ORDER BY created_at ASC, id ASC
        """,
            (user_id,),
        ).fetchall()
    return [_wishlist_from_row(r) for r in rows]


# --- items ---

def get_wishlist_item(item_id: int) -> Optional[WishlistItem]:
    with _connect() as con:
        row = con.execute("SELECT * FROM wishlist_items WHERE id=?", (item_id,)).fetchone()
    return _item_from_row(row) if row else None


def list_wishlist_items(share_id: str) -> Optional[List[WishlistItem]]:
    """Items of a shared wishlist, newest first; None if the share id is unknown."""
    wishlist = get_wishlist_by_share_id(share_id)
    if wishlist is None:
        return None
    with _connect() as con:
        rows = con.execute(
            """
            SELECT * FROM wishlist_items
            WHERE wishlist_id=?
            ORDER BY created_at DESC, id DESC
        """,
            (wishlist.id,),
        ).fetchall()
    return [_item_from_row(r) for r in rows]


def _item_fields(item: ItemDraft | Dict[str, Any]) -> Tuple[Optional[int], Dict[str, Any]]:
    raw = item.as_fields() if isinstance(item, ItemDraft) else dict(item)
    item_id = raw.pop("id", None)
    fields = {k: raw[k] for k in ITEM_FIELDS if k in raw}
    return item_id, fields


def upsert_wishlist_item_by_share_id(share_id: str, item: ItemDraft | Dict[str, Any]) -> ActionResult:
    """
    Create an item on the shared wishlist, or update it when the item carries
    an id. Only the fields present on `item` are written on update.
    """
    wishlist = get_wishlist_by_share_id(share_id)
    if wishlist is None:
        return ActionResult(success=False, reason="Invalid wishlist")

    item_id, fields = _item_fields(item)

    try:
        with _connect() as con:
            updated = 0
            if item_id is not None and fields:
                assignments = ", ".join(f"{k}=?" for k in fields)
                updated = con.execute(
                    f"UPDATE wishlist_items SET {assignments} WHERE id=? AND wishlist_id=?",
                    (*fields.values(), item_id, wishlist.id),
                ).rowcount
            elif item_id is not None:
                updated = con.execute(
                    "SELECT COUNT(*) FROM wishlist_items WHERE id=? AND wishlist_id=?",
                    (item_id, wishlist.id),
                ).fetchone()[0]

            if not updated:
                values = {
                    "name": fields.get("name") or DEFAULT_ITEM_NAME,
                    "price": fields.get("price"),
                    "image_url": fields.get("image_url"),
                    "original_link": fields.get("original_link") or "",
                    "notes": fields.get("notes") or "",
                }
                columns = ["wishlist_id", *values, "created_at"]
                params = [wishlist.id, *values.values(), now_utc_iso()]
                if item_id is not None:
                    columns.insert(0, "id")
                    params.insert(0, item_id)
                cur = con.execute(
                    f"INSERT INTO wishlist_items ({', '.join(columns)}) "
                    f"VALUES ({', '.join('?' for _ in columns)})",
                    params,
                )
                item_id = cur.lastrowid
            con.commit()
    except sqlite3.IntegrityError as e:
        logger.error("Unable to add wishlist item to %s: %s", share_id, e)
        return ActionResult(success=False, reason=f"Unable to add wishlist item. {e}")
    except sqlite3.Error as e:
        logger.error("Unable to add wishlist item to %s: %s", share_id, e)
        return ActionResult(success=False, reason="Unable to add wishlist item")

    saved = get_wishlist_item(item_id)
    logger.info("Saved wishlist item %s on %s", item_id, share_id)
    return ActionResult(success=True, reason="Item updated successfully", data=saved)


def delete_wishlist_item(item_id: int) -> ActionResult:
    with _connect() as con:
        con.execute("DELETE FROM wishlist_items WHERE id=?", (item_id,))
        con.commit()
    logger.info("Deleted wishlist item %s", item_id)
    return ActionResult(success=True)


# --- reservations ---

def _parse_amount(amount: Any) -> int:
    """Gift amounts arrive already in minor units; blank means zero."""
    if amount is None or (isinstance(amount, str) and not amount.strip()):
        return 0
    return int(amount)


def _optional_id(value: Any) -> Optional[int]:
    if value is None:
        return None
    text = str(value).strip()
    if not text or text == "undefined":
        return None
    return int(text)


def reserve_item(
    item_id: Any,
    nickname: str = "",
    email: str = "",
    message: str = "",
    amount: Any = None,
    user_id: Any = None,
    session_id: Optional[str] = None,
) -> ActionResult:
    """
    Record a reservation or cash gift from a visitor.

    session_id identifies the guest across visits; a new one is generated
    when missing and returned on the reservation.
    """
    session_id = session_id or str(uuid.uuid4())

    try:
        giver_amount = _parse_amount(amount)
        params = (
            _optional_id(item_id),
            _optional_id(user_id),
            session_id,
            nickname or "",
            email or "",
            message or "",
            giver_amount,
            1,
            now_utc_iso(),
        )
        with _connect() as con:
            cur = con.execute(
                """
                INSERT INTO reservations (
                    item_id, user_id, giver_session_id, giver_nickname,
                    giver_email, giver_message, giver_amount, is_purchased, reserved_at
                )
                VALUES (?,?,?,?,?,?,?,?,?)
            """,
                params,
            )
            reservation_id = cur.lastrowid
            con.commit()
    except (ValueError, sqlite3.Error) as e:
        logger.error("Reservation error for item %s: %s", item_id, e)
        return ActionResult(success=False, reason="Failed to reserve item")

    reservation = get_reservation(reservation_id)
    logger.info(
        "Reserved item %s by %s (amount=%d)",
        reservation.item_id,
        nickname or "anonymous",
        reservation.giver_amount,
    )
    return ActionResult(success=True, data=reservation)


def get_reservation(reservation_id: int) -> Optional[Reservation]:
    with _connect() as con:
        row = con.execute("SELECT * FROM reservations WHERE id=?", (reservation_id,)).fetchone()
    if not row:
        return None
    reservation = _reservation_from_row(row)
    if reservation.item_id is not None:
        reservation.item = get_wishlist_item(reservation.item_id)
    return reservation


def list_reservations_for_owner(user_id: int) -> List[Reservation]:
    """Reservations on items of wishlists owned by user_id, newest first."""
    with _connect() as con:
        rows = con.execute(
            """
            SELECT r.*,
                   i.id AS i_id, i.wishlist_id AS i_wishlist_id, i.name AS i_name,
                   i.price AS i_price, i.image_url AS i_image_url,
                   i.original_link AS i_original_link, i.notes AS i_notes,
                   i.created_at AS i_created_at
            FROM reservations r
            JOIN wishlist_items i ON i.id = r.item_id
            JOIN wishlists w ON w.id = i.wishlist_id
            WHERE w.user_id=?
            ORDER BY r.reserved_at DESC, r.id DESC
        """,
            (user_id,),
        ).fetchall()

    out: List[Reservation] = []
    for row in rows:
        reservation = _reservation_from_row(row)
        reservation.item = WishlistItem(
            id=row["i_id"],
            wishlist_id=row["i_wishlist_id"],
            name=row["i_name"],
            price=row["i_price"],
            image_url=row["i_image_url"],
            original_link=row["i_original_link"] or "",
            notes=row["i_notes"] or "",
            created_at=row["i_created_at"] or "",
        )
        out.append(reservation)
    return out


def get_item_owner(item_id: int) -> Optional[Tuple[User, Wishlist]]:
    """Owner and wishlist of an item, for gift notifications."""
    with _connect() as con:
        row = con.execute(
            """
            SELECT w.id AS w_id, w.name AS w_name, w.share_id AS w_share_id,
                   w.created_at AS w_created_at,
                   u.id, u.email, u.name, u.image, u.birthdate, u.gcash_qr_url
            FROM wishlist_items i
            JOIN wishlists w ON w.id = i.wishlist_id
            JOIN users u ON u.id = w.user_id
            WHERE i.id=?
        """,
            (item_id,),
        ).fetchone()
    if not row:
        return None
    user = _user_from_row(row)
    wishlist = Wishlist(
        id=row["w_id"],
        user_id=user.id,
        name=row["w_name"],
        share_id=row["w_share_id"],
        created_at=row["w_created_at"] or "",
    )
    return user, wishlist
