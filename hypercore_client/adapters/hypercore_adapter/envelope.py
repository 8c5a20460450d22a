from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from hypercore_client.adapters.hypercore_adapter.types import OrderStatus
from hypercore_client.core.errors import (
    ActionStatusNotOK,
    ActionSubmissionError,
    ActionSubmissionStatusFailure,
    ResponseMissingError,
    ResponseStatusesEmptyError,
)


@dataclass
class ActionResult:
    status: str
    response_type: str | None = None
    statuses: list[Any] = field(default_factory=list)
    order_id: str | None = None
    order_status: OrderStatus = OrderStatus.UNKNOWN
    errors: list[ActionSubmissionError] = field(default_factory=list)
    raw: Any = None

    @property
    def error(self) -> ActionSubmissionError | None:
        """The first per-item rejection, if any."""
        return self.errors[0] if self.errors else None

    @property
    def ok(self) -> bool:
        return not self.errors

    def raise_for_error(self) -> ActionResult:
        if (err := self.error) is not None:
            raise err
        return self


def _oid(entry: Any) -> int:
    if not isinstance(entry, Mapping):
        return 0
    try:
        return int(entry.get("oid") or 0)
    except (TypeError, ValueError):
        return 0


def _response_statuses(envelope: Mapping[str, Any]) -> tuple[str | None, list[Any]]:
    response = envelope.get("response")
    if not isinstance(response, Mapping):
        return None, []
    data = response.get("data")
    statuses = data.get("statuses") if isinstance(data, Mapping) else None
    return response.get("type"), list(statuses or [])


def parse_envelope(raw: Any) -> ActionResult:
    """Interpret the ``{status, response}`` envelope returned by ``/exchange``.

    A non-``ok`` status raises without looking at ``response``. Inside an ``ok``
    envelope each status entry is inspected in order: bare strings other than
    ``success`` and ``{"error": ...}`` entries become submission errors, while
    ``resting`` / ``filled`` entries with a positive oid set the order id.
    Submission errors are collected on the result rather than raised.
    """
    if not isinstance(raw, Mapping):
        raise ResponseMissingError()

    status = raw.get("status")
    status = "" if status is None else str(status)
    if status and status.lower() != "ok":
        raise ActionStatusNotOK(status)

    response_type, statuses = _response_statuses(raw)
    result = ActionResult(
        status=status, response_type=response_type, statuses=statuses, raw=raw
    )

    for entry in statuses:
        if isinstance(entry, str):
            if entry.lower() != "success":
                result.errors.append(ActionSubmissionStatusFailure(entry))
            continue
        if not isinstance(entry, Mapping):
            continue
        if isinstance(entry.get("error"), str):
            result.errors.append(ActionSubmissionError(entry["error"]))
        if (oid := _oid(entry.get("resting"))) > 0:
            result.order_id = str(oid)
            result.order_status = OrderStatus.ACTIVE
        if (oid := _oid(entry.get("filled"))) > 0:
            result.order_id = str(oid)
            result.order_status = OrderStatus.FILLED

    for err in result.errors:
        err.order_id = result.order_id
        err.order_status = result.order_status
    return result


def extract_order_status(
    raw: Any,
) -> tuple[str | None, OrderStatus, ActionSubmissionError | None]:
    """Stricter reading used where exactly one order outcome is expected.

    Requires a ``response`` with at least one status entry. An error entry
    forces ``UNKNOWN``; a resting entry alongside ``success`` means ``ACTIVE``;
    ``success`` alone means ``FILLED``.
    """
    if not isinstance(raw, Mapping) or not isinstance(raw.get("response"), Mapping):
        raise ResponseMissingError()
    _, statuses = _response_statuses(raw)
    if not statuses:
        raise ResponseStatusesEmptyError()

    resting_oid = 0
    has_success = False
    sub_err: ActionSubmissionError | None = None
    for entry in statuses:
        if isinstance(entry, str):
            if entry.lower() == "success":
                has_success = True
            else:
                sub_err = ActionSubmissionStatusFailure(entry)
            continue
        if not isinstance(entry, Mapping):
            continue
        for key, value in entry.items():
            match key.lower():
                case "resting":
                    resting_oid = _oid(value) or resting_oid
                case "success":
                    has_success = has_success or bool(value) or value is None
                case "error":
                    if value:
                        sub_err = ActionSubmissionError(str(value))

    order_id = str(resting_oid) if resting_oid else None
    if sub_err is not None:
        status = OrderStatus.UNKNOWN
    elif resting_oid and has_success:
        status = OrderStatus.ACTIVE
    elif has_success:
        status = OrderStatus.FILLED
    else:
        status = OrderStatus.UNKNOWN
    if sub_err is not None:
        sub_err.order_id = order_id
        sub_err.order_status = status
    return order_id, status, sub_err
