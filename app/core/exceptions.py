from typing import Any, Dict, Optional


class AppException(Exception):
    def __init__(
        self,
        message: str,
        status_code: int = 400,
        error_code: str = "BUSINESS_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details
        super().__init__(self.message)


class MissingContextError(AppException):
    """Employee or tenant could not be resolved. Nothing is computed."""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=404,
            error_code="MISSING_CONTEXT",
            details=details
        )


class InvalidLeaveRequestError(AppException):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=422,
            error_code="INVALID_LEAVE_REQUEST",
            details=details
        )


class LeaveOverlapError(AppException):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=409,
            error_code="LEAVE_OVERLAP",
            details=details
        )


class InsufficientBalanceError(AppException):
    def __init__(self, available_hours: float, requested_hours: float, category: str):
        super().__init__(
            message=(
                f"Insufficient {category} leave balance. "
                f"Requested: {requested_hours:.2f}h, available: {available_hours:.2f}h"
            ),
            status_code=409,
            error_code="INSUFFICIENT_BALANCE",
            details={
                "category": category,
                "available_hours": available_hours,
                "requested_hours": requested_hours,
            }
        )


class InvalidTransitionError(AppException):
    def __init__(self, current_status: str, target_status: str):
        super().__init__(
            message=f"Cannot move a leave request from '{current_status}' to '{target_status}'.",
            status_code=409,
            error_code="INVALID_STATUS_TRANSITION",
            details={"current_status": current_status, "target_status": target_status}
        )


class NegativeBalanceError(AppException):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=409,
            error_code="NEGATIVE_BALANCE",
            details=details
        )


class BalanceInconsistencyError(AppException):
    """Status and balance no longer agree. Always surfaced, never repaired silently."""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=500,
            error_code="BALANCE_INCONSISTENCY",
            details=details
        )


class LeaveTransitionError(AppException):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=500,
            error_code="LEAVE_TRANSITION_FAILED",
            details=details
        )


class BalanceInitializationError(AppException):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=500,
            error_code="BALANCE_INIT_FAILED",
            details=details
        )


class InitializationInProgressError(AppException):
    def __init__(self, scope_key: str):
        super().__init__(
            message=f"Balance initialization for {scope_key} is still in progress. Retry shortly.",
            status_code=409,
            error_code="BALANCE_INIT_IN_PROGRESS",
            details={"scope_key": scope_key}
        )
