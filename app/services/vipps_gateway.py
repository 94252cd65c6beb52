"""
Vipps Recurring API v3 client.

Vipps has no native billing schedule: the merchant creates an agreement once and then
requests every charge explicitly (due date at least two days ahead). Each club is its
own Vipps merchant, so every call is scoped with the club's Merchant-Serial-Number.
"""
import logging
from typing import Any, Dict, Optional

import httpx

from app.core.config import settings
from app.core.errors import VippsError

logger = logging.getLogger(__name__)


def _client() -> httpx.Client:
    return httpx.Client(
        base_url=settings.vipps_api_base_url,
        timeout=settings.HTTP_TIMEOUT_SECONDS,
    )


def _error_payload(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


def _raise_for_status(response: httpx.Response, action: str):
    if response.is_success:
        return
    payload = _error_payload(response)
    logger.error("[VIPPS] %s failed (%s): %s", action, response.status_code, payload)
    raise VippsError(f"{action} failed: {payload}", status=response.status_code, payload=payload)


def _request(method: str, path: str, action: str, **kwargs) -> httpx.Response:
    try:
        with _client() as client:
            response = client.request(method, path, **kwargs)
    except httpx.HTTPError as e:
        logger.error("[VIPPS] %s request error: %s", action, e)
        raise VippsError(f"{action} request error: {e}") from e
    _raise_for_status(response, action)
    return response


def get_access_token() -> str:
    response = _request(
        "POST",
        "/accesstoken/get",
        "access token",
        headers={
            "client_id": settings.VIPPS_CLIENT_ID or "",
            "client_secret": settings.VIPPS_CLIENT_SECRET or "",
            "Ocp-Apim-Subscription-Key": settings.VIPPS_SUBSCRIPTION_KEY or "",
            "Merchant-Serial-Number": settings.VIPPS_MERCHANT_SERIAL_NUMBER or "",
        },
    )
    token = response.json().get("access_token")
    if not token:
        raise VippsError("access token response did not contain access_token")
    return token


def _headers(merchant_msn: str, idempotency_key: Optional[str] = None) -> Dict[str, str]:
    headers = {
        "Content-Type": "application/json",
        "Authorization": f"Bearer {get_access_token()}",
        "Ocp-Apim-Subscription-Key": settings.VIPPS_SUBSCRIPTION_KEY or "",
        "Merchant-Serial-Number": merchant_msn,
        "Vipps-System-Name": settings.VIPPS_SYSTEM_NAME,
        "Vipps-System-Version": settings.VIPPS_SYSTEM_VERSION,
    }
    if idempotency_key:
        headers["Idempotency-Key"] = idempotency_key
    return headers


def create_agreement(
    merchant_msn: str,
    *,
    phone_number: str,
    amount: int,
    product_name: str,
    merchant_redirect_url: str,
    merchant_agreement_url: str,
) -> Dict[str, Any]:
    """
    Create a monthly agreement. Returns {"agreementId", "vippsConfirmationUrl"}.
    """
    response = _request(
        "POST",
        "/recurring/v3/agreements",
        "create agreement",
        headers=_headers(merchant_msn),
        json={
            "phoneNumber": phone_number,
            "interval": {"unit": "MONTH", "count": 1},
            "pricing": {"amount": amount, "currency": "NOK", "type": "LEGACY"},
            "productName": product_name,
            "merchantRedirectUrl": merchant_redirect_url,
            "merchantAgreementUrl": merchant_agreement_url,
        },
    )
    return response.json()


def get_agreement(merchant_msn: str, agreement_id: str) -> Dict[str, Any]:
    response = _request(
        "GET",
        f"/recurring/v3/agreements/{agreement_id}",
        "get agreement",
        headers=_headers(merchant_msn),
    )
    return response.json()


def charge_idempotency_key(agreement_id: str, due_date: str) -> str:
    return f"{agreement_id}-{due_date}"


def create_charge(
    merchant_msn: str,
    agreement_id: str,
    *,
    amount: int,
    description: str,
    due_date: str,
    retry_days: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Request a charge against an agreement. `due_date` is YYYY-MM-DD.

    The idempotency key is derived from (agreement, due date), so retrying the same
    day's request returns the same charge instead of creating a second one.
    """
    response = _request(
        "POST",
        f"/recurring/v3/agreements/{agreement_id}/charges",
        "create charge",
        headers=_headers(merchant_msn, charge_idempotency_key(agreement_id, due_date)),
        json={
            "amount": amount,
            "description": description,
            "due": due_date,
            "transactionType": "DIRECT_CAPTURE",
            "retryDays": settings.VIPPS_CHARGE_RETRY_DAYS if retry_days is None else retry_days,
            "type": "RECURRING",
        },
    )
    return response.json()

