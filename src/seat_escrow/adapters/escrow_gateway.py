"""Payment hold gateway backed by Stripe PaymentIntents."""

from dataclasses import dataclass
from typing import Protocol

import httpx


class EscrowError(RuntimeError):
    """Raised when the payment provider rejects a hold operation."""

    def __init__(self, action: str, hold_id: str | None, message: str) -> None:
        self.action = action
        self.hold_id = hold_id
        target = f" {hold_id}" if hold_id else ""
        super().__init__(f"{action}{target} failed: {message}")


@dataclass(frozen=True)
class EscrowHold:
    """A freshly authorized hold."""

    hold_id: str
    client_secret: str | None


class EscrowGateway(Protocol):
    """Interface for creating and settling payment holds."""

    async def create(
        self, amount: int, currency: str, metadata: dict[str, str]
    ) -> EscrowHold:
        """Authorize funds without capturing them."""

    async def capture(self, hold_id: str) -> None:
        """Capture a previously authorized hold."""

    async def cancel(self, hold_id: str) -> None:
        """Release a previously authorized hold."""


@dataclass
class HttpxStripeEscrowGateway(EscrowGateway):
    """Stripe REST client implemented with httpx."""

    secret_key: str
    base_url: str
    http_client: httpx.AsyncClient

    @classmethod
    def create_client(
        cls, secret_key: str, base_url: str = "https://api.stripe.com/v1"
    ) -> "HttpxStripeEscrowGateway":
        """Create a gateway with a managed httpx session."""
        return cls(
            secret_key=secret_key, base_url=base_url, http_client=httpx.AsyncClient()
        )

    async def create(
        self, amount: int, currency: str, metadata: dict[str, str]
    ) -> EscrowHold:
        """Create a PaymentIntent with manual capture."""
        form: dict[str, object] = {
            "amount": amount,
            "currency": currency,
            "capture_method": "manual",
        }
        for key, value in metadata.items():
            form[f"metadata[{key}]"] = value
        payload = await self._post("create", None, "/payment_intents", form)
        return EscrowHold(
            hold_id=str(payload["id"]),
            client_secret=payload.get("client_secret"),
        )

    async def capture(self, hold_id: str) -> None:
        """Capture the PaymentIntent."""
        await self._post("capture", hold_id, f"/payment_intents/{hold_id}/capture")

    async def cancel(self, hold_id: str) -> None:
        """Cancel the PaymentIntent and release the funds."""
        await self._post("cancel", hold_id, f"/payment_intents/{hold_id}/cancel")

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()

    async def _post(
        self,
        action: str,
        hold_id: str | None,
        path: str,
        form: dict[str, object] | None = None,
    ) -> dict[str, object]:
        try:
            response = await self.http_client.post(
                f"{self.base_url}{path}",
                data=form or {},
                headers={"Authorization": f"Bearer {self.secret_key}"},
                timeout=15,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise EscrowError(action, hold_id, _stripe_message(exc.response)) from exc
        except httpx.HTTPError as exc:
            raise EscrowError(action, hold_id, str(exc) or type(exc).__name__) from exc
        return response.json()


def _stripe_message(response: httpx.Response) -> str:
    """Extract Stripe's error message, falling back to the status code."""
    try:
        error = response.json().get("error", {})
    except ValueError:
        error = {}
    message = error.get("message") if isinstance(error, dict) else None
    return message or f"HTTP {response.status_code}"
