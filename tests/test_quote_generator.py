import json
from datetime import date, datetime, timezone
from pathlib import Path

import pytest

from property_quote_engine.dictionaries import ADDRESS_PLACEHOLDER, DEFAULT_CLIENT_NAME
from property_quote_engine.errors import (
    EmptyQuoteError,
    GenerationExhaustedError,
    GenerationFormatError,
)
from property_quote_engine.models.quote import QuoteGenerationRequest, QuoteStatus
from property_quote_engine.quote_generator import (
    QUOTE_SYSTEM_INSTRUCTION,
    QuoteGenerator,
    RetryingQuoteGenerator,
    extract_json_object,
)

FIXTURES = Path(__file__).resolve().parent.parent / "data" / "responses"
NOW = datetime(2025, 3, 3, 9, 30, tzinfo=timezone.utc)
TRANSCRIPT = (
    "Walking through 42 Wattle Grove. The switchboard is ancient and needs replacing, "
    "living room walls need a repaint and the kitchen tap is leaking."
)


class FakeTextGenerator:
    def __init__(self, *responses):
        self._responses = list(responses)
        self.calls = []

    def generate_text(self, *, system_instruction, user_message):
        self.calls.append({"system_instruction": system_instruction, "user_message": user_message})
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def load_response(name: str) -> str:
    return (FIXTURES / name).read_text(encoding="utf-8")


def single_service_payload(**service_overrides) -> dict:
    service = {
        "category": "Electrical",
        "description": "Install new electrical circuit for oven",
        "quantity": 1,
        "unit": "item",
        "unitPrice": 1100,
        "totalPrice": 1100,
    }
    service.update(service_overrides)
    payload = {
        "property": {"address": "3 Lorikeet Cl", "propertyType": "residential", "condition": "good"},
        "services": [service],
        "subtotal": 1100,
        "gst": 110,
        "total": 1210,
    }
    return payload


def single_service_response(**service_overrides) -> str:
    return "Here is the quote:\n" + json.dumps(single_service_payload(**service_overrides))


def make_generator(text_generator) -> QuoteGenerator:
    ids = iter(f"S-GEN{i}" for i in range(1, 100))
    return QuoteGenerator(
        text_generator,
        clock=lambda: NOW,
        quote_id_factory=lambda: "Q-FIXED",
        service_id_factory=lambda: next(ids),
    )


def test_extract_json_object_ignores_braces_in_strings():
    text = 'Sure! {"a": "use {} here", "b": {"c": 1}} and later {"d": 2}'
    assert extract_json_object(text) == '{"a": "use {} here", "b": {"c": 1}}'


def test_extract_json_object_handles_escaped_quotes():
    text = 'Result: {"a": "say \\"}\\" loudly"} done'
    assert json.loads(extract_json_object(text)) == {"a": 'say "}" loudly'}


@pytest.mark.parametrize("text", ["no json at all", '{"a": {"b": 1}', ""])
def test_extract_json_object_failures(text):
    with pytest.raises(GenerationFormatError):
        extract_json_object(text)


def test_generate_builds_validated_quote_from_fixture():
    fake = FakeTextGenerator(load_response("walkthrough_response.txt"))
    quote = make_generator(fake).generate(
        QuoteGenerationRequest(transcript=TRANSCRIPT, client_email="margaret@example.com")
    )

    assert quote.id == "Q-FIXED"
    assert quote.client_name == "Margaret Chen"
    assert quote.client_email == "margaret@example.com"
    assert quote.status is QuoteStatus.draft
    assert quote.created_at == NOW
    assert quote.valid_until == date(2025, 4, 2)
    assert quote.property.address == "42 Wattle Grove, Parramatta NSW 2150"
    assert quote.property.size.square_meters == 220

    assert [service.id for service in quote.services] == ["S-ELEC01", "S-GEN1", "S-GEN2"]
    assert quote.services[1].description == "Repaint living room walls {two coats, low-VOC}"
    assert [service.total_price for service in quote.services] == [1100, 1260, 190]
    assert quote.subtotal == 2550
    assert quote.gst == 255.0
    assert quote.total == 2805.0


def test_generate_passes_instruction_and_context():
    fake = FakeTextGenerator(single_service_response())
    request = QuoteGenerationRequest(
        transcript=TRANSCRIPT,
        client_name="Sam Taylor",
        additional_notes="Side gate is locked",
        property_address="3 Lorikeet Cl",
    )
    make_generator(fake).generate(request)

    call = fake.calls[0]
    assert call["system_instruction"] == QUOTE_SYSTEM_INSTRUCTION
    assert TRANSCRIPT in call["user_message"]
    assert "- Client name: Sam Taylor" in call["user_message"]
    assert "- Client email: Not specified" in call["user_message"]
    assert "Side gate is locked\nProperty address: 3 Lorikeet Cl" in call["user_message"]


def test_generate_applies_defaults():
    fake = FakeTextGenerator(single_service_response())
    quote = make_generator(fake).generate(QuoteGenerationRequest(transcript=TRANSCRIPT))

    assert quote.client_name == DEFAULT_CLIENT_NAME
    assert quote.valid_until == date(2025, 4, 2)
    assert quote.services[0].id == "S-GEN1"


def test_request_client_name_wins_over_model():
    fake = FakeTextGenerator(load_response("walkthrough_response.txt"))
    quote = make_generator(fake).generate(
        QuoteGenerationRequest(transcript=TRANSCRIPT, client_name="M. Chen")
    )
    assert quote.client_name == "M. Chen"


def test_single_electrical_item_totals():
    fake = FakeTextGenerator(single_service_response(totalPrice=999))
    quote = make_generator(fake).generate(QuoteGenerationRequest(transcript=TRANSCRIPT))
    assert quote.subtotal == 1100.00
    assert quote.gst == 110.00
    assert quote.total == 1210.00


@pytest.mark.parametrize("total_price", [None, "$1,100.00", "n/a"])
def test_bad_model_line_totals_are_recomputed(total_price):
    fake = FakeTextGenerator(single_service_response(totalPrice=total_price))
    quote = make_generator(fake).generate(QuoteGenerationRequest(transcript=TRANSCRIPT))

    assert quote.services[0].total_price == 1100.0
    assert quote.total == 1210.0


def test_missing_line_total_is_recomputed():
    payload = single_service_payload()
    del payload["services"][0]["totalPrice"]
    fake = FakeTextGenerator(json.dumps(payload))
    quote = make_generator(fake).generate(QuoteGenerationRequest(transcript=TRANSCRIPT))

    assert quote.services[0].total_price == 1100.0
    assert quote.total == 1210.0


def test_bad_model_quote_figures_are_ignored():
    payload = single_service_payload()
    payload.update(subtotal="$1,100.00", gst=None, total="about 1.2k")
    fake = FakeTextGenerator(json.dumps(payload))
    quote = make_generator(fake).generate(QuoteGenerationRequest(transcript=TRANSCRIPT))

    assert quote.subtotal == 1100.0
    assert quote.gst == 110.0
    assert quote.total == 1210.0


def test_null_address_gets_placeholder():
    payload = single_service_payload()
    payload["property"]["address"] = None
    fake = FakeTextGenerator(json.dumps(payload))
    quote = make_generator(fake).generate(QuoteGenerationRequest(transcript=TRANSCRIPT))

    assert quote.property.address == ADDRESS_PLACEHOLDER
    assert quote.total == 1210.0


def test_unparseable_json_is_a_format_error():
    fake = FakeTextGenerator("Here you go: {services: [oops]}")
    with pytest.raises(GenerationFormatError):
        make_generator(fake).generate(QuoteGenerationRequest(transcript=TRANSCRIPT))


def test_missing_property_is_a_format_error():
    fake = FakeTextGenerator(json.dumps({"services": []}))
    with pytest.raises(GenerationFormatError):
        make_generator(fake).generate(QuoteGenerationRequest(transcript=TRANSCRIPT))


def test_no_services_is_an_empty_quote():
    payload = {
        "property": {"address": "1 Test St", "propertyType": "residential", "condition": "good"},
        "services": [],
    }
    fake = FakeTextGenerator(json.dumps(payload))
    with pytest.raises(EmptyQuoteError):
        make_generator(fake).generate(QuoteGenerationRequest(transcript=TRANSCRIPT))


def test_retry_succeeds_after_two_failures():
    fake = FakeTextGenerator(
        ConnectionError("upstream timeout"),
        "I could not produce a quote.",
        single_service_response(),
    )
    delays = []
    retrying = RetryingQuoteGenerator(make_generator(fake), max_attempts=3, sleep=delays.append)

    quote = retrying.generate(QuoteGenerationRequest(transcript=TRANSCRIPT))

    assert quote.total == 1210.0
    assert len(fake.calls) == 3
    assert delays == [2.0, 4.0]


def test_retry_exhaustion_wraps_last_error():
    last = ConnectionError("still down")
    fake = FakeTextGenerator(ConnectionError("down"), "not json", last)
    delays = []
    retrying = RetryingQuoteGenerator(make_generator(fake), max_attempts=3, sleep=delays.append)

    with pytest.raises(GenerationExhaustedError) as exc_info:
        retrying.generate(QuoteGenerationRequest(transcript=TRANSCRIPT))

    assert len(fake.calls) == 3
    assert delays == [2.0, 4.0]
    assert exc_info.value.attempts == 3
    assert exc_info.value.last_error is last
    assert exc_info.value.__cause__ is last
    assert exc_info.value.retryable is True


def test_empty_quote_is_not_retried():
    payload = {
        "property": {"address": "1 Test St", "propertyType": "residential", "condition": "good"},
        "services": [],
    }
    fake = FakeTextGenerator(json.dumps(payload), single_service_response())
    delays = []
    retrying = RetryingQuoteGenerator(make_generator(fake), max_attempts=3, sleep=delays.append)

    with pytest.raises(EmptyQuoteError):
        retrying.generate(QuoteGenerationRequest(transcript=TRANSCRIPT))

    assert len(fake.calls) == 1
    assert delays == []


def test_retry_requires_an_attempt():
    with pytest.raises(ValueError):
        RetryingQuoteGenerator(make_generator(FakeTextGenerator()), max_attempts=0)
