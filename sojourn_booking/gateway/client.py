"""
Client module for the Razorpay payment gateway REST API, plus the HMAC
signature checks used to authenticate checkout callbacks and webhooks.

Gateway calls are never retried here: a failed order creation or refund surfaces
as PaymentGatewayError and the caller decides what to do.
"""

import hashlib
import hmac
import time
from typing import Any, Dict, Optional, cast
from urllib.parse import urljoin

import requests
import structlog

from sojourn_booking.config import (
    GATEWAY_BASE_URL,
    GATEWAY_KEY_ID,
    GATEWAY_KEY_SECRET,
    GATEWAY_TIMEOUT_SECONDS,
    GATEWAY_WEBHOOK_SECRET,
)
from sojourn_booking.errors import PaymentGatewayError
from sojourn_booking.metrics import gateway_latency, gateway_requests

logger = structlog.get_logger(__name__)

SIGNATURE_HEADER = "X-Razorpay-Signature"
EVENT_ID_HEADER = "X-Razorpay-Event-Id"


def _post(endpoint: str, metric_endpoint: str, payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    POST a JSON payload to the gateway with basic auth.

    Args:
        endpoint (str): Path relative to GATEWAY_BASE_URL.
        metric_endpoint (str): Low-cardinality endpoint label for metrics.
        payload (Dict[str, Any]): JSON body.

    Returns:
        Dict[str, Any]: Decoded JSON response.

    Raises:
        PaymentGatewayError: On transport errors or non-2xx responses.
    """
    url = urljoin(GATEWAY_BASE_URL, endpoint)

    start_time = time.time()
    try:
        res = requests.post(
            url,
            json=payload,
            auth=(GATEWAY_KEY_ID, GATEWAY_KEY_SECRET),
            timeout=GATEWAY_TIMEOUT_SECONDS,
        )
    except requests.RequestException as err:
        gateway_requests.labels(endpoint=metric_endpoint, status_code="error").inc()
        logger.warning("gateway_request_failed", endpoint=metric_endpoint, error=str(err))
        raise PaymentGatewayError(f"Payment gateway unreachable: {err}") from err
    finally:
        gateway_latency.labels(endpoint=metric_endpoint).observe(time.time() - start_time)

    gateway_requests.labels(endpoint=metric_endpoint, status_code=str(res.status_code)).inc()

    if not 200 <= res.status_code < 300:
        description = _error_description(res)
        logger.warning(
            "gateway_request_rejected",
            endpoint=metric_endpoint,
            status_code=res.status_code,
            description=description,
        )
        raise PaymentGatewayError(
            f"Payment gateway rejected request: {description}", status_code=res.status_code
        )

    return cast(Dict[str, Any], res.json())


def _error_description(res: requests.Response) -> str:
    try:
        body = res.json()
    except ValueError:
        return res.text or f"HTTP {res.status_code}"
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict) and error.get("description"):
        return str(error["description"])
    return f"HTTP {res.status_code}"


def create_order(
    amount: int,
    currency: str,
    receipt: str,
    notes: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    """
    Open a gateway order the guest will pay against.

    Args:
        amount (int): Amount in minor units (paise).
        currency (str): ISO currency code.
        receipt (str): Merchant receipt reference, at most 40 characters.
        notes (Optional[Dict[str, str]]): Free-form metadata echoed back in webhooks.

    Returns:
        Dict[str, Any]: Gateway order entity; ``id`` is the gateway order reference.
    """
    order = _post(
        "orders",
        "orders",
        {"amount": amount, "currency": currency, "receipt": receipt, "notes": notes or {}},
    )
    logger.info("gateway_order_created", gateway_order_id=order.get("id"), amount=amount)
    return order


def refund_payment(
    gateway_payment_id: str,
    amount: int,
    notes: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    """
    Refund a captured payment, fully or partially.

    Args:
        gateway_payment_id (str): Captured payment reference.
        amount (int): Amount to refund in minor units.
        notes (Optional[Dict[str, str]]): Free-form metadata.

    Returns:
        Dict[str, Any]: Gateway refund entity; ``id`` is the refund reference.
    """
    refund = _post(
        f"payments/{gateway_payment_id}/refund",
        "payments/refund",
        {"amount": amount, "notes": notes or {}},
    )
    logger.info(
        "gateway_refund_created",
        gateway_payment_id=gateway_payment_id,
        refund_id=refund.get("id"),
        amount=amount,
    )
    return refund


def _hmac_hex(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def compute_payment_signature(
    gateway_order_id: str, gateway_payment_id: str, secret: Optional[str] = None
) -> str:
    """Checkout signature: hex HMAC-SHA256 of ``order_id|payment_id`` with the key secret."""
    message = f"{gateway_order_id}|{gateway_payment_id}".encode("utf-8")
    return _hmac_hex(secret if secret is not None else GATEWAY_KEY_SECRET, message)


def verify_payment_signature(gateway_order_id: str, gateway_payment_id: str, signature: str) -> bool:
    """
    Check a checkout callback signature in constant time.

    Args:
        gateway_order_id (str): Gateway order reference.
        gateway_payment_id (str): Gateway payment reference.
        signature (str): Signature supplied by the client.

    Returns:
        bool: True if the signature is authentic.
    """
    if not GATEWAY_KEY_SECRET:
        logger.error("gateway_key_secret_missing")
        return False
    expected = compute_payment_signature(gateway_order_id, gateway_payment_id)
    return hmac.compare_digest(expected, signature or "")


def compute_webhook_signature(raw_body: bytes, secret: Optional[str] = None) -> str:
    """Webhook signature: hex HMAC-SHA256 of the raw request body with the webhook secret."""
    return _hmac_hex(secret if secret is not None else GATEWAY_WEBHOOK_SECRET, raw_body)


def verify_webhook_signature(raw_body: bytes, signature: Optional[str]) -> bool:
    """
    Check a webhook delivery signature in constant time.

    Args:
        raw_body (bytes): Request body exactly as received.
        signature (Optional[str]): Value of the X-Razorpay-Signature header.

    Returns:
        bool: True if the delivery is authentic.
    """
    if not GATEWAY_WEBHOOK_SECRET:
        logger.error("gateway_webhook_secret_missing")
        return False
    if not signature:
        return False
    return hmac.compare_digest(compute_webhook_signature(raw_body), signature)
