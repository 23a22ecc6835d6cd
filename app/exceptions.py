"""
Service-layer exceptions.

Services raise these instead of HTTPException so the same rules can run
outside a request (webhooks, scripts). app.main maps each class to its
status code and renders the standard error envelope.
"""


class ServiceError(Exception):
    """
    Base exception for all service errors.

    Attributes:
        message: Human-readable error message returned to the client
        details: Optional dict merged into the error response body
    """

    status_code = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.__class__.__name__}('{self.message}', {details_str})"
        return f"{self.__class__.__name__}('{self.message}')"


class Unauthorized(ServiceError):
    status_code = 401


class Forbidden(ServiceError):
    status_code = 403


class NotFound(ServiceError):
    """Order, service, partner or user does not exist (no mutation happened)."""

    status_code = 404


class PolicyViolation(ServiceError):
    """A transition guard failed. The caller should re-fetch the current state."""

    status_code = 400


class ValidationError(ServiceError):
    status_code = 400


class Internal(ServiceError):
    """Storage or transaction failure. Message must not leak internals."""

    status_code = 500


class OrderNotFound(NotFound):
    def __init__(self, order_id: str):
        super().__init__("Order not found", details={"orderId": order_id})
        self.order_id = order_id


class InvalidTransition(PolicyViolation):
    def __init__(self, order_id: str, current_status: str, target_status: str):
        super().__init__(
            f"Order cannot move from {current_status} to {target_status}",
            details={
                "orderId": order_id,
                "currentStatus": current_status,
                "targetStatus": target_status,
            },
        )
        self.current_status = current_status
        self.target_status = target_status
