from __future__ import annotations

import json
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Protocol

from pydantic import ValidationError

from .dictionaries import DEFAULT_CLIENT_NAME
from .errors import GenerationExhaustedError, GenerationFormatError, QuoteEngineError
from .models.quote import QuoteData, QuoteGenerationRequest, QuoteStatus, default_valid_until
from .validator import validate_and_recalculate

logger = logging.getLogger(__name__)


QUOTE_SYSTEM_INSTRUCTION = """
You are an expert building and property maintenance professional. You analyse property
walkthrough transcripts and produce detailed, accurate quotes for maintenance and repair work.

Your task is to:
1. Extract property details from the transcript
2. Identify every work item mentioned
3. Categorise work by trade (Electrical, Plumbing, Painting, Carpentry, Cleaning, Landscaping, General)
4. Estimate quantities and pricing at Australian market rates
5. Produce a professional quote structure

PRICING GUIDELINES (Australian market):
- Labour: $80-120/hour for licensed trades, $50-80/hour for general work
- Materials: add a 20-30% markup on cost price
- Adjust for property location where it is mentioned
- GST is 10% of the subtotal

Respond with a single JSON object of this shape:

{
  "clientName": "string (if mentioned, otherwise 'Valued Customer')",
  "property": {
    "address": "string",
    "propertyType": "residential|commercial|industrial",
    "size": {"squareMeters": number, "bedrooms": number, "bathrooms": number, "floors": number},
    "yearBuilt": number,
    "condition": "excellent|good|fair|poor|needs_renovation"
  },
  "services": [
    {
      "id": "string",
      "category": "string",
      "description": "string",
      "quantity": number,
      "unit": "hours|square meters|linear meters|item",
      "unitPrice": number,
      "totalPrice": number,
      "notes": "string"
    }
  ],
  "subtotal": number,
  "gst": number,
  "total": number,
  "notes": "string (general notes and assumptions)",
  "validUntil": "YYYY-MM-DD (30 days from today)"
}

Be thorough but realistic. Where the transcript is unclear, make reasonable assumptions and
record them in the notes.
""".strip()


class TextGenerator(Protocol):
    def generate_text(self, *, system_instruction: str, user_message: str) -> str:
        ...


def extract_json_object(text: str) -> str:
    """Return the first balanced ``{...}`` span in ``text``.

    Braces inside JSON string literals do not count towards nesting.
    """
    start = text.find("{")
    if start == -1:
        raise GenerationFormatError("Could not find a JSON object in the model response")

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start : index + 1]

    raise GenerationFormatError("JSON object in the model response is not balanced")


def generate_quote_id() -> str:
    ts = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
    return f"Q-{ts}-{uuid.uuid4().hex[:6]}".upper()


def generate_service_id() -> str:
    return f"S-{uuid.uuid4().hex[:8]}".upper()


class QuoteGenerator:
    def __init__(
        self,
        text_generator: TextGenerator,
        *,
        system_instruction: str = QUOTE_SYSTEM_INSTRUCTION,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        quote_id_factory: Callable[[], str] = generate_quote_id,
        service_id_factory: Callable[[], str] = generate_service_id,
    ) -> None:
        self._text_generator = text_generator
        self._system_instruction = system_instruction
        self._clock = clock
        self._quote_id_factory = quote_id_factory
        self._service_id_factory = service_id_factory

    def generate(self, request: QuoteGenerationRequest) -> QuoteData:
        response = self._text_generator.generate_text(
            system_instruction=self._system_instruction,
            user_message=self._build_user_message(request),
        )
        payload = self._parse_response(response)
        quote = self._build_quote(request, payload)
        validate_and_recalculate(quote)

        logger.info(
            "Quote generated",
            extra={
                "quote_id": quote.id,
                "services_count": len(quote.services),
                "total": quote.total,
            },
        )
        return quote

    def _build_user_message(self, request: QuoteGenerationRequest) -> str:
        return "\n".join(
            [
                "Transcript of property walkthrough:",
                f'"{request.transcript}"',
                "",
                "Additional information:",
                f"- Client name: {request.client_name or 'Not specified'}",
                f"- Client email: {request.client_email or 'Not specified'}",
                f"- Additional notes: {request.context_notes() or 'None'}",
                "",
                "Please generate a detailed quote based on this information.",
            ]
        )

    def _parse_response(self, response: str) -> dict[str, Any]:
        span = extract_json_object(response)
        try:
            payload = json.loads(span)
        except json.JSONDecodeError as exc:
            logger.error(
                "Failed to parse JSON from model response",
                extra={"response_length": len(response)},
            )
            raise GenerationFormatError(f"Invalid JSON in model response: {exc}") from exc
        if not isinstance(payload, dict):
            raise GenerationFormatError("Model response JSON is not an object")
        return payload

    def _build_quote(self, request: QuoteGenerationRequest, payload: dict[str, Any]) -> QuoteData:
        created_at = self._clock()
        services = payload.get("services") or []
        if not isinstance(services, list):
            raise GenerationFormatError("'services' in model response is not a list")

        data = {
            "id": self._quote_id_factory(),
            "clientName": request.client_name or payload.get("clientName") or DEFAULT_CLIENT_NAME,
            "clientEmail": request.client_email or "",
            "clientPhone": "",
            "property": payload.get("property"),
            "services": [
                self._prepare_service(service) if isinstance(service, dict) else service
                for service in services
            ],
            # Figures are recomputed by the validator; the model's are ignored.
            "subtotal": 0.0,
            "gst": 0.0,
            "total": 0.0,
            "validUntil": payload.get("validUntil") or default_valid_until(created_at.date()),
            "notes": payload.get("notes") or "",
            "createdAt": created_at,
            "status": QuoteStatus.draft,
        }
        try:
            return QuoteData.model_validate(data)
        except ValidationError as exc:
            raise GenerationFormatError(f"Model response does not match the quote shape: {exc}") from exc

    def _prepare_service(self, service: dict[str, Any]) -> dict[str, Any]:
        prepared = {
            key: value
            for key, value in service.items()
            if key not in ("totalPrice", "total_price")
        }
        prepared["id"] = service.get("id") or self._service_id_factory()
        return prepared


class RetryingQuoteGenerator:
    """Runs a :class:`QuoteGenerator` with bounded retries and exponential backoff.

    After attempt ``n`` fails the generator waits ``backoff_base ** n`` seconds.
    Errors flagged as not retryable are raised straight away.
    """

    def __init__(
        self,
        generator: QuoteGenerator,
        *,
        max_attempts: int = 3,
        backoff_base: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._generator = generator
        self._max_attempts = max_attempts
        self._backoff_base = backoff_base
        self._sleep = sleep

    def generate(self, request: QuoteGenerationRequest) -> QuoteData:
        last_error: Exception | None = None
        for attempt in range(1, self._max_attempts + 1):
            logger.info(
                "Quote generation attempt",
                extra={"attempt": attempt, "max_attempts": self._max_attempts},
            )
            try:
                return self._generator.generate(request)
            except QuoteEngineError as exc:
                if not exc.retryable:
                    raise
                last_error = exc
            except Exception as exc:
                last_error = exc

            logger.warning(
                "Quote generation attempt failed",
                extra={"attempt": attempt, "error": str(last_error)},
            )
            if attempt < self._max_attempts:
                delay = self._backoff_base**attempt
                logger.info("Retrying quote generation", extra={"delay_seconds": delay})
                self._sleep(delay)

        raise GenerationExhaustedError(
            f"Quote generation failed after {self._max_attempts} attempts: {last_error}",
            attempts=self._max_attempts,
            last_error=last_error,
        ) from last_error


__all__ = [
    "QUOTE_SYSTEM_INSTRUCTION",
    "TextGenerator",
    "QuoteGenerator",
    "RetryingQuoteGenerator",
    "extract_json_object",
    "generate_quote_id",
    "generate_service_id",
]
