"""Access to the payment provider.

The workflow only depends on the :class:`PaymentGateway` protocol. The Stripe
implementation translates provider errors into the order error taxonomy.
"""

import typing as t
from contextlib import contextmanager
from datetime import datetime
from datetime import timezone as dt_timezone

import orjson
import requests
import stripe
import structlog
from django.conf import settings
from pydantic import ValidationError

from orders.exceptions import DependencyError, DependencyTimeoutError, NotFoundError, OrderValidationError
from orders.types import (
    BillingAddress,
    CardDetails,
    CreatedPaymentIntent,
    ManifestEntry,
    PaymentConfirmation,
    PaymentMetadata,
    PaymentMethodDetails,
)

logger = structlog.get_logger(__name__)

stripe.api_key = settings.STRIPE_SECRET_KEY
stripe.max_network_retries = settings.STRIPE_MAX_NETWORK_RETRIES
stripe.default_http_client = stripe.RequestsClient(timeout=settings.STRIPE_TIMEOUT_SECONDS)

# Stripe accepts at most 50 metadata keys with values of up to 500 characters.
MANIFEST_KEY = "allTicketsDetails"
METADATA_VALUE_LIMIT = 500
MAX_MANIFEST_CHUNKS = 49


class PaymentGateway(t.Protocol):
    def retrieve_payment_intent(self, payment_intent_id: str) -> PaymentConfirmation: ...

    def retrieve_payment_method(self, payment_method_id: str) -> PaymentMethodDetails: ...

    def create_payment_intent(
        self, *, amount: int, currency: str, metadata: PaymentMetadata
    ) -> CreatedPaymentIntent: ...


def parse_manifest(raw: str | None) -> list[ManifestEntry] | None:
    """Parse one manifest metadata value."""
    if not raw:
        return None
    try:
        rows = orjson.loads(raw)
        if not isinstance(rows, list):
            raise TypeError("manifest must be a list")
        return [ManifestEntry.model_validate(row) for row in rows]
    except (orjson.JSONDecodeError, TypeError, ValidationError) as e:
        raise OrderValidationError("The payment ticket details are malformed.") from e


def manifest_key(index: int) -> str:
    return MANIFEST_KEY if index == 0 else f"{MANIFEST_KEY}_{index}"


def manifest_metadata(entries: t.Iterable[ManifestEntry]) -> dict[str, str]:
    """Spread the manifest over as many metadata values as it needs.

    Each value is a JSON list of whole rows no longer than Stripe's value limit,
    stored under ``allTicketsDetails``, ``allTicketsDetails_1``, and so on.
    """
    chunks: list[list[dict[str, t.Any]]] = [[]]
    for entry in entries:
        row = entry.model_dump(mode="json", by_alias=True)
        if chunks[-1] and len(orjson.dumps([*chunks[-1], row])) > METADATA_VALUE_LIMIT:
            chunks.append([])
        chunks[-1].append(row)
    if len(chunks) > MAX_MANIFEST_CHUNKS:
        raise OrderValidationError("Too many ticket lines for a single payment.")
    return {manifest_key(index): orjson.dumps(chunk).decode() for index, chunk in enumerate(chunks)}


def manifest_from_metadata(metadata: t.Mapping[str, t.Any]) -> list[ManifestEntry] | None:
    """Join the manifest back from the values written by :func:`manifest_metadata`."""
    entries: list[ManifestEntry] = []
    for index in range(MAX_MANIFEST_CHUNKS):
        raw = metadata.get(manifest_key(index))
        if raw is None:
            break
        entries.extend(parse_manifest(raw) or [])
    return entries or None


class StripePaymentGateway:
    """PaymentGateway backed by the Stripe API."""

    def retrieve_payment_intent(self, payment_intent_id: str) -> PaymentConfirmation:
        with _translate_errors("retrieve_payment_intent", payment_intent_id):
            intent = stripe.PaymentIntent.retrieve(payment_intent_id)
        metadata = intent.metadata or {}
        payment_method = intent.payment_method
        if payment_method is not None and not isinstance(payment_method, str):
            payment_method = payment_method.id
        return PaymentConfirmation(
            id=intent.id,
            status=intent.status,
            amount=intent.amount,
            currency=intent.currency,
            buyer_id=metadata.get("userId"),
            manifest=manifest_from_metadata(metadata),
            payment_method_id=payment_method,
            created=datetime.fromtimestamp(intent.created, tz=dt_timezone.utc) if intent.created else None,
        )

    def retrieve_payment_method(self, payment_method_id: str) -> PaymentMethodDetails:
        with _translate_errors("retrieve_payment_method", payment_method_id):
            method = stripe.PaymentMethod.retrieve(payment_method_id)
        card = getattr(method, "card", None)
        billing = getattr(method, "billing_details", None)
        address = getattr(billing, "address", None) if billing else None
        return PaymentMethodDetails(
            id=method.id,
            card=CardDetails(
                brand=card.brand, exp_month=card.exp_month, exp_year=card.exp_year, last4=card.last4
            )
            if card
            else None,
            billing_address=BillingAddress(
                line1=address.line1,
                line2=address.line2,
                city=address.city,
                state=address.state,
                postal_code=address.postal_code,
                country=address.country,
            )
            if address
            else None,
            billing_name=getattr(billing, "name", None) if billing else None,
        )

    def create_payment_intent(self, *, amount: int, currency: str, metadata: PaymentMetadata) -> CreatedPaymentIntent:
        with _translate_errors("create_payment_intent", None):
            intent = stripe.PaymentIntent.create(
                amount=amount,
                currency=currency.lower(),
                metadata=metadata,
                automatic_payment_methods={"enabled": True},
            )
        logger.info("stripe_payment_intent_created", payment_intent_id=intent.id, amount=amount, currency=currency)
        return CreatedPaymentIntent(
            id=intent.id, client_secret=intent.client_secret, amount=intent.amount, currency=intent.currency
        )


def get_payment_gateway() -> PaymentGateway:
    return StripePaymentGateway()


@contextmanager
def _translate_errors(operation: str, object_id: str | None) -> t.Iterator[None]:
    """Map Stripe exceptions onto order errors."""
    try:
        yield
    except stripe.InvalidRequestError as e:
        if e.code != "resource_missing":
            logger.error("stripe_request_failed", operation=operation, object_id=object_id, error=str(e))
            raise DependencyError() from e
        logger.info("stripe_resource_missing", operation=operation, object_id=object_id)
        raise NotFoundError(f"{object_id} not found.") from e
    except stripe.APIConnectionError as e:
        if _is_timeout(e):
            logger.warning("stripe_timeout", operation=operation, object_id=object_id)
            raise DependencyTimeoutError() from e
        logger.warning("stripe_connection_failed", operation=operation, object_id=object_id, error=str(e))
        raise DependencyError() from e
    except stripe.StripeError as e:
        logger.error("stripe_request_failed", operation=operation, object_id=object_id, error=str(e))
        raise DependencyError() from e


def _is_timeout(error: BaseException) -> bool:
    """Whether a connection error was caused by a request timing out."""
    cause = error.__cause__ or error.__context__
    while cause is not None:
        if isinstance(cause, (requests.exceptions.Timeout, TimeoutError)):
            return True
        cause = cause.__cause__ or cause.__context__
    return False
