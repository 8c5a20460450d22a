from __future__ import annotations

from typing import Any


class HypercoreError(Exception):
    pass


class ConfigurationError(HypercoreError):
    pass


class MissingCredentialError(ConfigurationError):
    def __init__(self, field: str = "secret") -> None:
        self.field = field
        super().__init__(f"hyperliquid: missing credential {field!r} for signed action")


class InvalidKeyError(ConfigurationError, ValueError):
    pass


class SigningError(HypercoreError):
    pass


class NegativeTimestampError(HypercoreError):
    def __init__(self, value: int) -> None:
        self.value = value
        super().__init__(f"hyperliquid: clock returned negative timestamp {value}")


class RequestValidationError(HypercoreError, ValueError):
    pass


class UnknownCoinError(RequestValidationError):
    def __init__(self, coin: str) -> None:
        self.coin = coin
        super().__init__(f"hyperliquid: unknown coin {coin!r}")


class ExpiresAfterUnsupportedError(RequestValidationError):
    def __init__(self, action_type: str) -> None:
        self.action_type = action_type
        super().__init__(
            f"hyperliquid: expiresAfter is not supported for user-signed action {action_type!r}"
        )


class TransportError(HypercoreError):
    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: str | None = None,
    ) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class ActionError(HypercoreError):
    pass


class ActionStatusNotOK(ActionError):
    def __init__(self, status: str) -> None:
        self.status = status
        super().__init__(f"hyperliquid: action status not ok: {status}")


class ActionSubmissionError(ActionError):
    """A per-item rejection inside an otherwise ``ok`` envelope.

    ``order_id`` and ``order_status`` carry whatever the other status entries
    produced, so callers can still act on partial success.
    """

    def __init__(
        self,
        message: str,
        *,
        order_id: str | None = None,
        order_status: Any = None,
    ) -> None:
        self.message = message
        self.order_id = order_id
        self.order_status = order_status
        self.result: Any = None
        super().__init__(f"hyperliquid: action submission failed: {message}")


class ActionSubmissionStatusFailure(ActionSubmissionError):
    pass


class ResponseMissingError(ActionError):
    def __init__(self, message: str = "hyperliquid: response missing") -> None:
        super().__init__(message)


class ResponseStatusesEmptyError(ActionError):
    def __init__(self, message: str = "hyperliquid: response statuses empty") -> None:
        super().__init__(message)


class ResponseDecodeError(HypercoreError):
    pass


class OrderNotFoundError(HypercoreError, KeyError):
    def __init__(self, order_id: str) -> None:
        self.order_id = order_id
        super().__init__(f"hyperliquid: order {order_id} not found")

    def __str__(self) -> str:
        return str(self.args[0])


class SubscriptionError(HypercoreError):
    pass


class SubscriptionAckError(SubscriptionError):
    def __init__(self, method: str, descriptor: str, reason: str) -> None:
        self.method = method
        self.descriptor = descriptor
        self.reason = reason
        super().__init__(
            f"hyperliquid: {method} subscription {descriptor} failed: {reason}"
        )


class SubscriptionDecodeError(SubscriptionError):
    pass


class DuplicateSubscriptionError(SubscriptionError):
    def __init__(self, fingerprint: str) -> None:
        self.fingerprint = fingerprint
        super().__init__(f"hyperliquid: subscription {fingerprint} already active")


class SubscriptionNotFoundError(SubscriptionError, KeyError):
    def __init__(self, fingerprint: str) -> None:
        self.fingerprint = fingerprint
        super().__init__(f"hyperliquid: subscription {fingerprint} not found")

    def __str__(self) -> str:
        return str(self.args[0])


class WebsocketMessageError(HypercoreError):
    def __init__(self, message: str, *, channel: str | None = None) -> None:
        self.channel = channel
        super().__init__(message)


class ActiveAssetDataNotFoundError(HypercoreError, KeyError):
    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"hyperliquid: no active asset data for {key}")

    def __str__(self) -> str:
        return str(self.args[0])
