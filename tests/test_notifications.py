"""Tests for the single-slot notification relay."""
import asyncio
import logging

from storefront.core.notifications import NotificationRelay, infer_severity
from storefront.schemas.notification import Severity

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


def test_new_message_replaces_pending_one(relay):
    """M1 then M2 before M1 expires: only M2 is visible, M1 is gone for good."""
    relay.success("M1")
    relay.info("M2")

    assert relay.current.text == "M2"
    relay.dismiss()
    assert relay.current is None


def test_message_expires_after_duration(relay, clock):
    relay.success("Added", duration=3)

    clock.advance(2.9)
    assert relay.has_message
    clock.advance(0.1)
    assert relay.current is None


def test_per_emission_duration(relay, clock):
    relay.error("Failed to cancel", duration=5)

    clock.advance(4)
    assert relay.current.text == "Failed to cancel"
    clock.advance(1)
    assert relay.current is None


def test_replacement_restarts_expiry(relay, clock):
    relay.success("M1", duration=3)
    clock.advance(2)
    relay.success("M2", duration=3)
    clock.advance(2)

    assert relay.current.text == "M2"


def test_navigation_clears_message(relay):
    relay.success("Pho Bo added to cart")

    relay.navigate("/checkout")

    assert relay.current is None


def test_explicit_severity_wins_over_text(relay):
    message = relay.emit("Payment failed? Not at all, all good", Severity.SUCCESS)

    assert message.severity == Severity.SUCCESS


def test_untagged_message_uses_keyword_heuristic(relay):
    assert relay.emit("Failed to add item").severity == Severity.ERROR
    assert relay.emit("Vui lòng đăng nhập để thêm vào giỏ hàng").severity == Severity.ERROR
    assert relay.emit("Đã thêm Pho Bo vào giỏ hàng").severity == Severity.INFO


def test_infer_severity_is_case_insensitive():
    assert infer_severity("NETWORK ERROR") == Severity.ERROR
    assert infer_severity("") == Severity.INFO


def test_listeners_hear_emit_and_dismiss(relay):
    seen = []
    relay.subscribe(seen.append)

    relay.success("hello")
    relay.dismiss()

    assert [m.text if m else None for m in seen] == ["hello", None]


def test_scheduled_dismissal_inside_event_loop():
    """With a running loop the relay dismisses itself and tells listeners."""
    relay = NotificationRelay(default_duration=0.01)
    seen = []
    relay.subscribe(seen.append)

    async def run():
        relay.info("short lived")
        await asyncio.sleep(0.05)

    asyncio.run(run())

    assert seen[-1] is None
    assert relay.current is None
