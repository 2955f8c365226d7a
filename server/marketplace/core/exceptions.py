"""Custom exceptions following RFC 9457 Problem Details for HTTP APIs."""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


class ProblemDetailsException(HTTPException):
    """
    Base exception class following RFC 9457 Problem Details for HTTP APIs.

    https://tools.ietf.org/rfc/rfc9457.txt
    """

    def __init__(
        self,
        status_code: int,
        title: str,
        detail: Optional[str] = None,
        type_uri: Optional[str] = None,
        instance: Optional[str] = None,
        extensions: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        """
        Initialize Problem Details exception.

        Args:
            status_code: HTTP status code
            title: Short, human-readable summary of the problem type
            detail: Human-readable explanation specific to this occurrence
            type_uri: URI reference that identifies the problem type
            instance: URI reference that identifies the specific occurrence
            extensions: Additional problem-specific information
            headers: HTTP headers to include in response
        """
        self.status_code = status_code
        self.title = title
        self.detail = detail
        self.type_uri = type_uri or f"about:blank#{status_code}"
        self.instance = instance
        self.extensions = extensions or {}

        self.problem_details = {
            "type": self.type_uri,
            "title": self.title,
            "status": self.status_code,
        }

        if self.detail:
            self.problem_details["detail"] = self.detail

        if self.instance:
            self.problem_details["instance"] = self.instance

        self.problem_details.update(self.extensions)

        super().__init__(
            status_code=status_code,
            detail=self.problem_details,
            headers=headers
        )


class ValidationError(ProblemDetailsException):
    """Exception for request validation errors."""

    def __init__(
        self,
        detail: str = "The request data failed validation",
        errors: Optional[list] = None,
        instance: Optional[str] = None,
    ):
        extensions = {}
        if errors:
            extensions["violations"] = errors

        super().__init__(
            status_code=400,
            title="Validation Error",
            detail=detail,
            type_uri="https://example.com/problems/validation-error",
            instance=instance,
            extensions=extensions,
        )


class AuthenticationError(ProblemDetailsException):
    """Exception for authentication errors."""

    def __init__(
        self,
        detail: str = "Authentication credentials are required",
        instance: Optional[str] = None,
    ):
        super().__init__(
            status_code=401,
            title="Authentication Required",
            detail=detail,
            type_uri="https://example.com/problems/authentication-required",
            instance=instance,
            headers={"WWW-Authenticate": "Bearer"},
        )


class AuthorizationError(ProblemDetailsException):
    """Exception for authorization errors."""

    def __init__(
        self,
        detail: str = "Insufficient permissions to access this resource",
        required_permissions: Optional[list] = None,
        instance: Optional[str] = None,
    ):
        extensions = {}
        if required_permissions:
            extensions["required_permissions"] = required_permissions

        super().__init__(
            status_code=403,
            title="Access Forbidden",
            detail=detail,
            type_uri="https://example.com/problems/access-forbidden",
            instance=instance,
            extensions=extensions,
        )


class NotFoundError(ProblemDetailsException):
    """Exception for resource not found errors."""

    def __init__(
        self,
        resource_type: str = "resource",
        resource_id: Optional[str] = None,
        detail: Optional[str] = None,
        instance: Optional[str] = None,
    ):
        if not detail:
            detail = f"The requested {resource_type}"
            if resource_id:
                detail += f" with ID '{resource_id}'"
            detail += " could not be found"

        extensions = {
            "resource_type": resource_type,
        }
        if resource_id:
            extensions["resource_id"] = resource_id

        super().__init__(
            status_code=404,
            title="Resource Not Found",
            detail=detail,
            type_uri="https://example.com/problems/resource-not-found",
            instance=instance,
            extensions=extensions,
        )


# Payment pipeline exceptions visible over HTTP

class SignatureError(ProblemDetailsException):
    """Webhook signature could not be verified; the gateway should retry."""

    def __init__(self, detail: str = "Webhook signature verification failed"):
        super().__init__(
            status_code=400,
            title="Invalid Webhook Signature",
            detail=detail,
            type_uri="https://example.com/problems/invalid-webhook-signature",
            extensions={"code": "SIGNATURE_INVALID", "retryable": True},
        )


class MetadataEncodingError(ProblemDetailsException):
    """Booking draft cannot be packed into payment-intent metadata."""

    def __init__(self, detail: str, field: Optional[str] = None, size: Optional[int] = None):
        extensions: Dict[str, Any] = {"code": "METADATA_TOO_LARGE", "retryable": False}
        if field:
            extensions["field"] = field
        if size is not None:
            extensions["size"] = size

        super().__init__(
            status_code=400,
            title="Booking Data Not Encodable",
            detail=detail,
            type_uri="https://example.com/problems/metadata-encoding",
            extensions=extensions,
        )


class PaymentGatewayError(ProblemDetailsException):
    """The payment gateway rejected or failed a request."""

    def __init__(self, detail: str = "The payment gateway could not process the request"):
        super().__init__(
            status_code=502,
            title="Payment Gateway Error",
            detail=detail,
            type_uri="https://example.com/problems/payment-gateway",
            extensions={"code": "GATEWAY_ERROR", "retryable": True},
        )


# Payment pipeline exceptions raised after the payment is confirmed.
# These are logged and acknowledged, never returned to the gateway.

class PipelineError(Exception):
    """Base class for failures downstream of a confirmed payment."""


class MetadataDecodingError(PipelineError):
    """Payment-intent metadata does not decode into a booking draft."""


class ResolutionError(PipelineError):
    """A referenced service or its vendor could not be found."""

    def __init__(self, message: str, service_id: Optional[str] = None):
        super().__init__(message)
        self.service_id = service_id


class PersistenceError(PipelineError):
    """Writing a booking failed after validation passed."""

    def __init__(self, message: str, transaction_id: str, partial: Any = None):
        super().__init__(message)
        self.transaction_id = transaction_id
        self.partial = partial


class SideEffectError(PipelineError):
    """A post-booking side effect failed."""

    def __init__(self, effect: str, message: str):
        super().__init__(f"{effect}: {message}")
        self.effect = effect


async def problem_details_handler(request: Request, exc: ProblemDetailsException) -> JSONResponse:
    """
    Exception handler for Problem Details exceptions.

    Args:
        request: FastAPI request object
        exc: Problem Details exception

    Returns:
        JSONResponse: Problem Details formatted response
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.problem_details,
        headers=exc.headers,
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render body validation failures as 400 Problem Details with violations."""
    violations = [
        {
            "path": ".".join(str(part) for part in error.get("loc", ())),
            "message": error.get("msg", "Invalid value"),
        }
        for error in exc.errors()
    ]
    problem = ValidationError(errors=violations, instance=str(request.url.path))
    return JSONResponse(status_code=problem.status_code, content=problem.problem_details)


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Generic exception handler that converts unhandled exceptions to Problem Details format.

    Args:
        request: FastAPI request object
        exc: Unhandled exception

    Returns:
        JSONResponse: Problem Details formatted response
    """
    error_id = str(uuid.uuid4())

    problem_details = {
        "type": "https://example.com/problems/internal-server-error",
        "title": "Internal Server Error",
        "status": 500,
        "detail": "An unexpected error occurred while processing the request",
        "instance": str(request.url),
        "error_id": error_id,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    return JSONResponse(
        status_code=500,
        content=problem_details,
    )
