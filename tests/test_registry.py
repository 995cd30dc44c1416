import json

import pytest

import registry
from fetchers import metadata
from fetchers.metadata import ExtractionResult


def test_add_item_from_shopee_link(db, share_id, capsys):
    code = registry.main(
        ["add-item", share_id, "https://shopee.ph/cool-lamp-i.1.2", "--price", "1,299.50"]
    )
    assert code == 0
    assert "cool lamp (₱1,299.50)" in capsys.readouterr().out

    item = db.list_wishlist_items(share_id)[0]
    assert item.price == 129950
    assert item.original_link == "https://shopee.ph/cool-lamp-i.1.2"


def test_add_item_from_scraped_link(db, share_id, monkeypatch):
    monkeypatch.setattr(
        metadata,
        "extract_metadata_from_url",
        lambda url: ExtractionResult(
            success=True, url=url, price_number=499.0,
            og={"title": "Tumbler", "image": "http://x/t.png"},
        ),
    )
    assert registry.main(["add-item", share_id, "https://www.lazada.com.ph/products/t"]) == 0
    item = db.list_wishlist_items(share_id)[0]
    assert (item.name, item.price, item.image_url) == ("Tumbler", 49900, "http://x/t.png")


def test_add_item_to_unknown_wishlist(db, monkeypatch):
    assert registry.main(["add-item", "nope", "https://shopee.ph/x-i.1.2"]) == 1


def test_items_listing(db, share_id, capsys):
    db.upsert_wishlist_item_by_share_id(share_id, {"name": "Lamp", "price": 1000})
    assert registry.main(["items", share_id]) == 0
    out = capsys.readouterr().out
    assert "1 item" in out
    assert "Lamp  ₱10.00" in out
    assert registry.main(["items", "missing"]) == 1


def test_extract_prints_candidates(db, monkeypatch, capsys):
    monkeypatch.setattr(
        metadata,
        "extract_metadata_from_url",
        lambda url: ExtractionResult.create_error(url, "Read timed out"),
    )
    assert registry.main(["extract", "https://slow.example/p"]) == 1
    payload = json.loads(capsys.readouterr().out)
    assert payload["success"] is False
    assert payload["error"] == "Read timed out"


def test_reserve_notifies_owner(db, owner, share_id, monkeypatch, capsys):
    item = db.upsert_wishlist_item_by_share_id(share_id, {"name": "Lamp"}).data
    notified = []
    monkeypatch.setattr(registry, "notify_owner", lambda r, u, w: notified.append((r, u, w)))

    code = registry.main(
        ["reserve", str(item.id), "--nickname", "Tita", "--amount", "500", "--message", "Enjoy!"]
    )
    assert code == 0
    reservation, user, wishlist = notified[0]
    assert reservation.giver_amount == 50000
    assert user.email == owner.email
    assert wishlist.share_id == share_id

    assert registry.main(["reservations", owner.email]) == 0
    out = capsys.readouterr().out
    assert 'Tita  ₱500.00  "Enjoy!"' in out


def test_run_exits_with_command_status(db):
    with pytest.raises(SystemExit) as exc:
        registry.run(["items", "missing"])
    assert exc.value.code == 1


def test_run_logs_unexpected_errors_and_exits_2(db, monkeypatch, caplog):
    def broken(url):
        raise RuntimeError("db on fire")

    monkeypatch.setattr(registry, "candidates_for_url", broken)
    with pytest.raises(SystemExit) as exc:
        registry.run(["extract", "https://shop.example/x"])
    assert exc.value.code == 2
    assert any("Fatal registry error" in r.getMessage() for r in caplog.records)
