"""M-Pesa Daraja API client."""

import base64
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Protocol

import httpx

from photo_unlock.errors import DependencyError, GatewayAuthenticationError

logger = logging.getLogger(__name__)

# Daraja expects timestamps in East Africa Time, which has no DST.
GATEWAY_TZ = timezone(timedelta(hours=3), name="EAT")
TRANSACTION_TYPE = "CustomerPayBillOnline"


class MpesaClient(Protocol):
    """Interface for the mobile-money gateway."""

    async def get_access_token(self) -> str:
        """Return a short-lived bearer token for the gateway."""

    async def stk_push(  # noqa: PLR0913
        self,
        access_token: str,
        *,
        phone_number: str,
        amount: int,
        account_reference: str,
        description: str,
        callback_url: str,
    ) -> dict[str, object]:
        """Submit a push-payment request and return the raw gateway response."""

    async def stk_query(
        self, access_token: str, checkout_request_id: str
    ) -> dict[str, object]:
        """Query the status of a push-payment request."""


def gateway_timestamp(now: datetime | None = None) -> str:
    """Return the gateway timestamp in YYYYMMDDHHMMSS form."""
    moment = now or datetime.now(tz=GATEWAY_TZ)
    return moment.astimezone(GATEWAY_TZ).strftime("%Y%m%d%H%M%S")


def build_password(short_code: str, passkey: str, timestamp: str) -> str:
    """Return the base64 request signature for a timestamp."""
    raw = f"{short_code}{passkey}{timestamp}".encode()
    return base64.b64encode(raw).decode("utf-8")


@dataclass
class HttpxMpesaClient(MpesaClient):
    """Daraja client implemented with httpx."""

    consumer_key: str
    consumer_secret: str
    short_code: str
    passkey: str
    base_url: str
    timeout: float
    http_client: httpx.AsyncClient

    @classmethod
    def create(  # noqa: PLR0913
        cls,
        consumer_key: str,
        consumer_secret: str,
        short_code: str,
        passkey: str,
        base_url: str,
        timeout: float = 30.0,
    ) -> "HttpxMpesaClient":
        """Create a Daraja client with a managed httpx session."""
        return cls(
            consumer_key=consumer_key,
            consumer_secret=consumer_secret,
            short_code=short_code,
            passkey=passkey,
            base_url=base_url,
            timeout=timeout,
            http_client=httpx.AsyncClient(),
        )

    async def get_access_token(self) -> str:
        """Fetch an OAuth token using the client-credentials grant."""
        url = f"{self.base_url}/oauth/v1/generate"
        try:
            response = await self.http_client.get(
                url,
                params={"grant_type": "client_credentials"},
                auth=(self.consumer_key, self.consumer_secret),
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.exception("Failed to get M-Pesa access token")
            raise GatewayAuthenticationError() from exc
        token = data.get("access_token") if isinstance(data, dict) else None
        if not token:
            raise GatewayAuthenticationError("Payment gateway returned no access token")
        return str(token)

    async def stk_push(  # noqa: PLR0913
        self,
        access_token: str,
        *,
        phone_number: str,
        amount: int,
        account_reference: str,
        description: str,
        callback_url: str,
    ) -> dict[str, object]:
        """Submit an STK push request."""
        timestamp = gateway_timestamp()
        payload = {
            "BusinessShortCode": int(self.short_code),
            "Password": build_password(self.short_code, self.passkey, timestamp),
            "Timestamp": timestamp,
            "TransactionType": TRANSACTION_TYPE,
            "Amount": amount,
            "PartyA": int(phone_number),
            "PartyB": int(self.short_code),
            "PhoneNumber": int(phone_number),
            "CallBackURL": callback_url,
            "AccountReference": account_reference,
            "TransactionDesc": description,
        }
        return await self._post("/mpesa/stkpush/v1/processrequest", access_token, payload)

    async def stk_query(
        self, access_token: str, checkout_request_id: str
    ) -> dict[str, object]:
        """Query an STK push request by its checkout request id."""
        timestamp = gateway_timestamp()
        payload = {
            "BusinessShortCode": int(self.short_code),
            "Password": build_password(self.short_code, self.passkey, timestamp),
            "Timestamp": timestamp,
            "CheckoutRequestID": checkout_request_id,
        }
        return await self._post("/mpesa/stkpushquery/v1/query", access_token, payload)

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()

    async def _post(
        self, path: str, access_token: str, payload: dict[str, object]
    ) -> dict[str, object]:
        # Error payloads come back as JSON with a non-2xx status and are
        # returned to the caller so the gateway's message can be stored.
        try:
            response = await self.http_client.post(
                f"{self.base_url}{path}",
                json=payload,
                headers={"Authorization": f"Bearer {access_token}"},
                timeout=self.timeout,
            )
        except httpx.HTTPError as exc:
            raise DependencyError("Payment gateway request failed") from exc
        try:
            data = response.json()
        except ValueError as exc:
            raise DependencyError(
                f"Payment gateway returned HTTP {response.status_code}"
            ) from exc
        if not isinstance(data, dict):
            raise DependencyError("Payment gateway returned an unexpected body")
        return data
