from __future__ import annotations


class TableUtilError(Exception):
    pass


class ConditionFailedError(TableUtilError):
    pass


class NotFoundError(TableUtilError):
    pass


class ValidationError(TableUtilError):
    pass


class TransactionCapacityError(ValidationError):
    def __init__(self, *, message: str, size: int, limit: int) -> None:
        super().__init__(message)
        self.size = size
        self.limit = limit


class EmptyTransactionError(ValidationError):
    pass


class TransactionCommittedError(ValidationError):
    pass


class UpdateResultEmptyError(TableUtilError):
    """The store accepted an update but returned no post-update image."""


class ThrottledError(TableUtilError):
    def __init__(self, *, code: str, message: str) -> None:
        super().__init__(f"{code}: {message}")
        self.code = code
        self.message = message


class TransactionCanceledError(TableUtilError):
    def __init__(self, *, message: str, reason_codes: tuple[str, ...]) -> None:
        super().__init__(message)
        self.reason_codes = reason_codes


class AwsError(TableUtilError):
    def __init__(self, *, code: str, message: str) -> None:
        super().__init__(f"{code}: {message}")
        self.code = code
        self.message = message
