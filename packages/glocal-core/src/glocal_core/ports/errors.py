"""Shared structure for errors raised across the port boundaries."""

from __future__ import annotations

from pydantic import Field

from glocal_schemas.base import BaseSchema
from glocal_schemas.responses import ErrorDetails, ErrorResponse


class StructuredErrorInfo(BaseSchema):
    """Error payload carried by every structured exception.

    Subclasses narrow ``code`` to their own error code enum and override
    ``response_details`` to expose their context in the response envelope.
    """

    code: str = Field(..., min_length=1, description="Error code")
    message: str = Field(..., min_length=1, description="Error message")

    def response_details(self) -> ErrorDetails | None:
        """Details to publish in the error response, if any."""
        return None

    def response_message(self) -> str:
        """Message to publish in the error response."""
        return self.message

    def to_error_response(self) -> ErrorResponse:
        """Convert the error info to the standard error response schema.

        Returns:
            ErrorResponse: Standard response error payload.
        """
        return ErrorResponse(
            code=str(self.code),
            message=self.response_message(),
            details=self.response_details(),
        )


class StructuredError[InfoT: StructuredErrorInfo](Exception):
    """Exception wrapping a structured error payload."""

    def __init__(self, info: InfoT) -> None:
        """Initialize the error.

        Args:
            info: Structured error information.
        """
        super().__init__(info.message)
        self.info = info
