from __future__ import annotations


class FacetdbPyError(Exception):
    code = "FacetdbError"

    def __init__(self, message: str, *, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.message}: {self.cause}"
        return self.message


class SchemaError(FacetdbPyError):
    code = "InvalidSchema"


class DuplicateEntityError(SchemaError):
    code = "DuplicateEntity"


class InvalidKeysError(FacetdbPyError):
    code = "InvalidKeys"


class InvalidIndexError(FacetdbPyError):
    code = "InvalidIndex"


class MissingAttributeError(FacetdbPyError):
    code = "MissingAttribute"


class ValidationError(FacetdbPyError):
    code = "ValidationError"


class InvalidEnumValueError(ValidationError):
    code = "InvalidEnumValue"


class ReadOnlyViolationError(ValidationError):
    code = "ReadOnlyViolation"


class UpdateConflictError(ValidationError):
    code = "UpdateConflict"


class CursorEncodingError(FacetdbPyError):
    code = "CursorEncodingError"


class CursorDecodingError(FacetdbPyError):
    code = "CursorDecodingError"


class EntityNotFoundError(FacetdbPyError):
    code = "EntityNotFound"


class CollectionNotFoundError(FacetdbPyError):
    code = "CollectionNotFound"


class NoClientProvidedError(FacetdbPyError):
    code = "NoClientProvided"


class ConditionFailedError(FacetdbPyError):
    code = "ConditionalCheckFailed"


class NotFoundError(FacetdbPyError):
    code = "NotFound"


class BatchRetryExceededError(FacetdbPyError):
    code = "BatchRetryExceeded"

    def __init__(self, *, operation: str, unprocessed_count: int) -> None:
        super().__init__(f"{operation}: retry limit exceeded (unprocessed={unprocessed_count})")
        self.operation = operation
        self.unprocessed_count = unprocessed_count


class TransactionCanceledError(FacetdbPyError):
    code = "TransactionCanceled"

    def __init__(self, *, message: str, reason_codes: tuple[str, ...]) -> None:
        super().__init__(message)
        self.reason_codes = reason_codes


class AwsError(FacetdbPyError):
    def __init__(self, *, code: str, message: str) -> None:
        super().__init__(f"{code}: {message}")
        self.code = code
        self.aws_message = message
