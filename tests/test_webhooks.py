"""Tests for webhook signature verification."""

import time

import pytest

from helpers import FAKE_API_KEY
from stripe_payments import (
    Event,
    InvalidPayloadError,
    SignatureVerificationError,
    StripeClient,
    ThinEvent,
    construct_event,
    generate_test_header_string,
    parse_thin_event,
)
from stripe_payments.core.webhooks import compute_signature, event_summary, verify_header

SECRET = "whsec_test_secret"
DUMMY_WEBHOOK_PAYLOAD = """{
  "id": "evt_test_webhook",
  "object": "event",
  "data": { "object": { "id": "rdr_123", "object": "terminal.reader" } }
}"""
THIN_PAYLOAD = '{"event_type":"account.created"}'


def test_parse_thin_event():
    header = generate_test_header_string(THIN_PAYLOAD, SECRET)
    event = parse_thin_event(THIN_PAYLOAD, header, SECRET)
    assert isinstance(event, ThinEvent)
    assert event.event_type == "account.created"


def test_parse_thin_event_keeps_related_object_raw():
    payload = (
        '{"id":"evt_1","type":"v1.billing.meter.error_report_triggered",'
        '"related_object":{"id":"mtr_1","type":"billing.meter","url":"/v1/billing/meters/mtr_1"}}'
    )
    header = generate_test_header_string(payload, SECRET)
    event = parse_thin_event(payload, header, SECRET)
    assert type(event["related_object"]) is dict
    assert event.related_object["url"] == "/v1/billing/meters/mtr_1"


def test_parse_thin_event_bad_header():
    with pytest.raises(SignatureVerificationError):
        parse_thin_event(THIN_PAYLOAD, "bad sigheader", SECRET)


def test_construct_event():
    header = generate_test_header_string(DUMMY_WEBHOOK_PAYLOAD, SECRET)
    event = construct_event(DUMMY_WEBHOOK_PAYLOAD, header, SECRET)
    assert isinstance(event, Event)
    assert event.id == "evt_test_webhook"
    assert event.data.object.id == "rdr_123"


def test_construct_event_from_bytes():
    payload = DUMMY_WEBHOOK_PAYLOAD.encode("utf-8")
    header = generate_test_header_string(payload, SECRET)
    assert construct_event(payload, header, SECRET).id == "evt_test_webhook"


def test_construct_event_invalid_json():
    payload = "this is not valid JSON"
    header = generate_test_header_string(payload, SECRET)
    with pytest.raises(InvalidPayloadError):
        construct_event(payload, header, SECRET)


def test_construct_event_non_object_json():
    payload = "[1, 2, 3]"
    header = generate_test_header_string(payload, SECRET)
    with pytest.raises(InvalidPayloadError):
        construct_event(payload, header, SECRET)


class TestVerifyHeader:
    def test_valid_header(self):
        header = generate_test_header_string(DUMMY_WEBHOOK_PAYLOAD, SECRET)
        assert verify_header(DUMMY_WEBHOOK_PAYLOAD, header, SECRET)

    def test_malformed_header(self):
        with pytest.raises(
            SignatureVerificationError,
            match="Unable to extract timestamp and signatures from header",
        ) as excinfo:
            verify_header(DUMMY_WEBHOOK_PAYLOAD, "i'm not even a real signature header", SECRET)
        assert excinfo.value.sig_header == "i'm not even a real signature header"
        assert excinfo.value.http_body == DUMMY_WEBHOOK_PAYLOAD

    def test_non_numeric_timestamp(self):
        with pytest.raises(SignatureVerificationError, match="Unable to extract timestamp"):
            verify_header(DUMMY_WEBHOOK_PAYLOAD, "t=abc,v1=deadbeef", SECRET)

    def test_missing_header(self):
        with pytest.raises(SignatureVerificationError):
            verify_header(DUMMY_WEBHOOK_PAYLOAD, None, SECRET)

    def test_no_signatures_with_expected_scheme(self):
        header = generate_test_header_string(DUMMY_WEBHOOK_PAYLOAD, SECRET, scheme="v0")
        with pytest.raises(
            SignatureVerificationError, match="No signatures found with expected scheme"
        ):
            verify_header(DUMMY_WEBHOOK_PAYLOAD, header, SECRET)

    def test_wrong_signature(self):
        header = generate_test_header_string(
            DUMMY_WEBHOOK_PAYLOAD, SECRET, signature="bad_signature"
        )
        with pytest.raises(
            SignatureVerificationError,
            match="No signatures found matching the expected signature for payload",
        ):
            verify_header(DUMMY_WEBHOOK_PAYLOAD, header, SECRET)

    def test_wrong_secret(self):
        header = generate_test_header_string(DUMMY_WEBHOOK_PAYLOAD, "whsec_other")
        with pytest.raises(SignatureVerificationError):
            verify_header(DUMMY_WEBHOOK_PAYLOAD, header, SECRET)

    def test_tampered_payload(self):
        header = generate_test_header_string(DUMMY_WEBHOOK_PAYLOAD, SECRET)
        with pytest.raises(SignatureVerificationError):
            verify_header(DUMMY_WEBHOOK_PAYLOAD + " ", header, SECRET)

    def test_timestamp_outside_tolerance(self):
        header = generate_test_header_string(
            DUMMY_WEBHOOK_PAYLOAD, SECRET, timestamp=int(time.time()) - 15
        )
        with pytest.raises(SignatureVerificationError, match="Timestamp outside the tolerance zone"):
            verify_header(DUMMY_WEBHOOK_PAYLOAD, header, SECRET, tolerance=10)

    def test_future_timestamp_outside_tolerance(self):
        header = generate_test_header_string(DUMMY_WEBHOOK_PAYLOAD, SECRET, timestamp=1000)
        with pytest.raises(SignatureVerificationError, match="Timestamp outside the tolerance zone"):
            verify_header(DUMMY_WEBHOOK_PAYLOAD, header, SECRET, now=500)

    def test_default_tolerance_boundary(self):
        header = generate_test_header_string(DUMMY_WEBHOOK_PAYLOAD, SECRET, timestamp=1000)
        assert verify_header(DUMMY_WEBHOOK_PAYLOAD, header, SECRET, now=1300)
        with pytest.raises(SignatureVerificationError):
            verify_header(DUMMY_WEBHOOK_PAYLOAD, header, SECRET, now=1301)

    def test_none_tolerance_uses_default(self):
        header = generate_test_header_string(DUMMY_WEBHOOK_PAYLOAD, SECRET, timestamp=1000)
        with pytest.raises(SignatureVerificationError):
            verify_header(DUMMY_WEBHOOK_PAYLOAD, header, SECRET, None, now=2000)

    def test_zero_tolerance_disables_timestamp_check(self):
        header = generate_test_header_string(DUMMY_WEBHOOK_PAYLOAD, SECRET, timestamp=12345)
        assert verify_header(DUMMY_WEBHOOK_PAYLOAD, header, SECRET, tolerance=0)

    def test_multiple_signatures_in_header(self):
        timestamp = int(time.time())
        valid = compute_signature(f"{timestamp}.{DUMMY_WEBHOOK_PAYLOAD}", SECRET)
        header = f"t={timestamp},v1=bad_signature,v1={valid},v0=legacy"
        assert verify_header(DUMMY_WEBHOOK_PAYLOAD, header, SECRET)

    def test_secret_rotation(self):
        header = generate_test_header_string(DUMMY_WEBHOOK_PAYLOAD, "whsec_new")
        assert verify_header(DUMMY_WEBHOOK_PAYLOAD, header, ["whsec_old", "whsec_new"])

    def test_empty_secret_list_rejected(self):
        header = generate_test_header_string(DUMMY_WEBHOOK_PAYLOAD, SECRET)
        with pytest.raises(ValueError):
            verify_header(DUMMY_WEBHOOK_PAYLOAD, header, [])


def test_generate_test_header_string_format():
    header = generate_test_header_string("{}", SECRET, timestamp=1492774577)
    expected = compute_signature("1492774577.{}", SECRET)
    assert header == f"t=1492774577,v1={expected}"


def test_client_exposes_webhook_helpers():
    client = StripeClient(FAKE_API_KEY)
    header = client.webhooks.generate_test_header_string(THIN_PAYLOAD, SECRET)
    assert client.parse_thin_event(THIN_PAYLOAD, header, SECRET).event_type == "account.created"
    assert client.construct_event(THIN_PAYLOAD, header, SECRET)["event_type"] == "account.created"


def test_event_summary():
    event = parse_thin_event(
        THIN_PAYLOAD, generate_test_header_string(THIN_PAYLOAD, SECRET), SECRET
    )
    assert event_summary(event) == {"id": None, "type": "account.created", "created": None}


def test_non_ascii_signature_is_rejected():
    with pytest.raises(
        SignatureVerificationError,
        match="No signatures found matching the expected signature for payload",
    ):
        construct_event(THIN_PAYLOAD, "t=123,v1=éabc", SECRET, tolerance=0)


def test_invalid_utf8_payload_with_forged_signature():
    with pytest.raises(SignatureVerificationError):
        construct_event(b'{"a":"\xff"}', "t=123,v1=deadbeef", SECRET, tolerance=0)


def test_invalid_utf8_payload_with_valid_signature():
    payload = b'{"a":"\xff"}'
    header = generate_test_header_string(payload, SECRET)
    assert verify_header(payload, header, SECRET)
    with pytest.raises(InvalidPayloadError, match="not valid UTF-8"):
        construct_event(payload, header, SECRET)
