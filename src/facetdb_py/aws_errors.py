from __future__ import annotations

from typing import Any

from botocore.exceptions import ClientError

from .errors import (
    AwsError,
    ConditionFailedError,
    FacetdbPyError,
    NotFoundError,
    TransactionCanceledError,
    ValidationError,
)


def _error_fields(err: ClientError) -> tuple[str, str]:
    error: dict[str, Any] = err.response.get("Error", {}) or {}
    return str(error.get("Code", "")), str(error.get("Message", ""))


def map_client_error(err: ClientError) -> FacetdbPyError:
    code, message = _error_fields(err)

    if code == "ConditionalCheckFailedException":
        return ConditionFailedError(message or "conditional check failed", cause=err)
    if code == "ValidationException":
        return ValidationError(message or "request rejected by DynamoDB", cause=err)
    if code == "ResourceNotFoundException":
        return NotFoundError(message or "table not found", cause=err)

    return AwsError(code=code or "UnknownError", message=message or str(err))


def map_transaction_error(err: ClientError) -> FacetdbPyError:
    code, message = _error_fields(err)

    if code == "TransactionCanceledException":
        reasons_raw = err.response.get("CancellationReasons") or []
        reason_codes = tuple(
            str(reason.get("Code", "None")) for reason in reasons_raw if isinstance(reason, dict)
        )

        if "ConditionalCheckFailed" in reason_codes:
            return ConditionFailedError(
                message or "transaction canceled: ConditionalCheckFailed",
                cause=err,
            )

        return TransactionCanceledError(
            message=message or "transaction canceled",
            reason_codes=reason_codes,
        )

    return map_client_error(err)
