import smtplib

import pytest

from core import emailer, notify
from core.models import Reservation, User, Wishlist, WishlistItem

OWNER = User(id=1, email="ana@example.com", name="Ana")
WISHLIST = Wishlist(id=1, user_id=1, name="Ana's Wishlist", share_id="ana-wishlist")
LAMP = WishlistItem(id=3, wishlist_id=1, name="Desk Lamp", price=129950,
                    image_url="http://x/img.png", original_link="https://shop.example/lamp")


def _reservation(**kw):
    defaults = dict(id=1, item_id=3, user_id=None, giver_session_id="guest-1",
                    giver_nickname="Tita Baby", giver_message="Merry Christmas!", item=LAMP)
    defaults.update(kw)
    return Reservation(**defaults)


def test_item_reservation_text():
    text = notify.build_plaintext_notification(_reservation(), OWNER, WISHLIST)
    assert "Tita Baby reserved Desk Lamp on Ana's Wishlist." in text
    assert "Item: Desk Lamp (₱1,299.50)" in text
    assert '"Merry Christmas!"' in text
    assert "/wishlist/ana-wishlist" in text
    assert "Cash gift" not in text


def test_cash_gift_html():
    html = notify.build_html_notification(_reservation(giver_amount=50000), OWNER, WISHLIST)
    assert "Tita Baby sent you ₱500.00" in html
    assert "Cash gift: <strong>₱500.00</strong>" in html
    assert 'src="http://x/img.png"' in html


def test_html_escapes_visitor_input():
    html = notify.build_html_notification(
        _reservation(giver_message="<script>alert(1)</script>"), OWNER, WISHLIST
    )
    assert "<script>" not in html
    assert "&lt;script&gt;" in html


def test_anonymous_gift_without_item():
    ctx = notify.build_context(_reservation(giver_nickname="", item=None, item_id=None), OWNER, WISHLIST)
    assert ctx["headline"] == "Someone sent you a gift"
    assert ctx["item"] is None


def test_notify_owner_sends_to_owner(monkeypatch):
    sent = []
    monkeypatch.setattr(notify, "send_email", lambda *args: sent.append(args) or True)

    assert notify.notify_owner(_reservation(), OWNER, WISHLIST) is True
    subject, html_body, text_body, recipients = sent[0]
    assert subject == "[gustoko.ng] Tita Baby reserved Desk Lamp"
    assert recipients == ["ana@example.com"]
    assert "Desk Lamp" in html_body and "Desk Lamp" in text_body


def test_unconfigured_email_is_skipped(monkeypatch, caplog):
    monkeypatch.setattr(emailer, "SMTP_HOST", "")
    assert emailer.send_email("s", "<p>h</p>", "t", ["a@example.com"]) is False
    assert any("not fully configured" in r.getMessage() for r in caplog.records)


def test_no_recipients_is_skipped(caplog):
    assert emailer.send_email("s", "<p>h</p>", None, []) is False
    assert any("No recipients" in r.getMessage() for r in caplog.records)


@pytest.fixture
def smtp_configured(monkeypatch):
    monkeypatch.setattr(emailer, "EMAIL_FROM", "noreply@gustoko.ng")
    monkeypatch.setattr(emailer, "SMTP_HOST", "smtp.example")
    monkeypatch.setattr(emailer, "SMTP_RETRY_WAIT", 0)


def test_send_retries_transient_smtp_errors(monkeypatch, smtp_configured):
    calls = []

    def deliver(msg, recipients):
        calls.append(recipients)
        if len(calls) == 1:
            raise smtplib.SMTPServerDisconnected("gone")

    monkeypatch.setattr(emailer, "_deliver", deliver)
    assert emailer.send_email("s", "<p>h</p>", "t", ["a@example.com"]) is True
    assert len(calls) == 2


def test_send_failure_is_logged_not_raised(monkeypatch, smtp_configured, caplog):
    def deliver(msg, recipients):
        raise ConnectionRefusedError("refused")

    monkeypatch.setattr(emailer, "_deliver", deliver)
    assert emailer.send_email("s", "<p>h</p>", "t", ["a@example.com"]) is False
    assert any("Failed to send email" in r.getMessage() for r in caplog.records)


def test_message_has_text_and_html_parts(smtp_configured):
    msg = emailer.build_message("Subject", "<p>hi</p>", None, ["a@example.com", "b@example.com"])
    assert msg["To"] == "a@example.com, b@example.com"
    parts = msg.get_payload()
    assert [p.get_content_subtype() for p in parts] == ["plain", "html"]
