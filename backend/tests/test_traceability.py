"""Tests for the roll tag codec."""

import json
import uuid

import pytest

from rolltrack.config import settings
from rolltrack.middleware.exceptions import InvalidInputError
from rolltrack.utils.traceability import (
    TraceabilityPayload,
    allocation_label,
    build_payload,
    decode_tag,
    encode_payload,
    render_qr_svg,
)


def _payload(**overrides) -> TraceabilityPayload:
    fields = dict(
        roll_number="WEAVING-20260301-004-R001",
        batch_id="batch-1",
        fabric_type="base_fabric",
        fabric_id="fabric-1",
        roll_length=50.0,
    )
    fields.update(overrides)
    return build_payload(**fields)


@pytest.mark.unit
class TestPayload:

    def test_stock_building_defaults(self):
        payload = _payload()

        assert payload.type == "fabric_roll"
        assert payload.production_purpose == "stock_building"
        assert payload.color == "Natural"
        assert payload.allocation_status == "Available for stock building"
        assert payload.generated_at is not None

    def test_customer_order_context(self):
        payload = _payload(
            customer_order_id="co-1",
            customer_order_number="CO-2026-0042",
            customer_name="Acme Tarpaulins",
            color="Olive Green",
        )

        assert payload.production_purpose == "customer_order"
        assert payload.color == "Olive Green"
        assert payload.allocation_status == "Available for Acme Tarpaulins"

    def test_allocation_labels(self):
        assert allocation_label("allocated", "Acme") == "Allocated to Acme"
        assert allocation_label("allocated") == "Allocated to customer order"
        assert allocation_label("shipped") == "Shipped to customer"
        assert allocation_label("delivered") == "Delivered to customer"
        assert allocation_label("available") == "Available for stock building"


@pytest.mark.unit
class TestEncodeDecode:

    def test_direct_form_is_lookup_url(self):
        roll_id = str(uuid.uuid4())
        tag = encode_payload(_payload(roll_id=roll_id))

        assert tag == f"{settings.qr_base_url}/api/rolls/{roll_id}/lookup"

        decoded = decode_tag(tag)
        assert decoded.is_direct
        assert decoded.roll_id == roll_id
        assert decoded.payload is None

    def test_web_app_api_roll_tag(self):
        roll_id = str(uuid.uuid4())
        tag = json.dumps({
            "type": "api_roll",
            "rollId": roll_id,
            "apiUrl": f"https://mills.example.com/roll/{roll_id}",
            "qrGeneratedAt": "2026-03-01T08:30:00Z",
        })

        decoded = decode_tag(tag)
        assert decoded.is_direct
        assert decoded.roll_id == roll_id

    def test_web_app_api_roll_tag_falls_back_to_url(self):
        roll_id = str(uuid.uuid4())
        tag = json.dumps({"type": "api_roll", "apiUrl": f"https://mills.example.com/roll/{roll_id}"})

        assert decode_tag(tag).roll_id == roll_id

    def test_web_app_roll_page_url(self):
        roll_id = str(uuid.uuid4())

        decoded = decode_tag(f"https://mills.example.com/roll/{roll_id}")
        assert decoded.is_direct
        assert decoded.roll_id == roll_id

    def test_api_roll_tag_without_id_rejected(self):
        with pytest.raises(InvalidInputError, match="rollId"):
            decode_tag(json.dumps({"type": "api_roll", "rollId": "not-a-uuid"}))

    def test_legacy_form_is_compact_json(self):
        tag = encode_payload(_payload())

        assert tag.startswith("{")
        assert ": " not in tag and ", " not in tag
        assert "rollNumber" in tag

        decoded = decode_tag(tag)
        assert not decoded.is_direct
        assert decoded.payload.roll_number == "WEAVING-20260301-004-R001"
        assert decoded.payload.fabric_type == "base_fabric"
        assert decoded.payload.roll_length == 50.0

    def test_legacy_camel_case_keys(self):
        tag = json.dumps({
            "type": "fabric_roll",
            "rollNumber": "COATING-20260301-002-R003",
            "batchId": "batch-9",
            "fabricType": "finished_fabric",
            "fabricId": "fabric-9",
            "rollLength": 30,
            "qrGeneratedAt": "2026-03-01T08:30:00Z",
            "customerName": "Acme Tarpaulins",
        })

        payload = decode_tag(tag).payload
        assert payload.roll_number == "COATING-20260301-002-R003"
        assert payload.customer_name == "Acme Tarpaulins"

    @pytest.mark.parametrize("raw", ["", "   ", "hello", "{not json", "[1, 2]"])
    def test_unparseable_tags_rejected(self, raw):
        with pytest.raises(InvalidInputError):
            decode_tag(raw)

    def test_missing_roll_fields_rejected(self):
        tag = json.dumps({
            "type": "fabric_roll",
            "batchId": "batch-9",
            "fabricType": "finished_fabric",
            "fabricId": "fabric-9",
            "qrGeneratedAt": "2026-03-01T08:30:00Z",
        })
        with pytest.raises(InvalidInputError, match="Roll number"):
            decode_tag(tag)

    def test_missing_generated_at_rejected(self):
        tag = json.dumps({
            "type": "fabric_roll",
            "rollNumber": "X-R001",
            "batchId": "batch-9",
            "fabricType": "finished_fabric",
            "fabricId": "fabric-9",
        })
        with pytest.raises(InvalidInputError):
            decode_tag(tag)

    def test_render_qr_svg(self):
        svg = render_qr_svg(f"{settings.qr_base_url}/api/rolls/{uuid.uuid4()}/lookup")
        assert b"<svg" in svg
