"""Standardized error response schema.

Every failure that reaches the HTTP boundary is returned with this body,
whatever raised it:

    {"code": "not-found", "message": "Order 42 not found"}

``details`` is only present when the error carries structured details, for
instance the failure list of a payload validation. Transaction id and
correlator travel in response headers, not in the body.
"""

from typing import Any

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Error body returned for every mapped failure."""

    code: str = Field(
        ...,
        description="Stable machine-readable error code",
        examples=["not-found", "unprocessable-entity", "internal-error"],
    )

    message: str = Field(
        ...,
        description="Human-readable error message",
        examples=["Order 42 not found", "An internal server error occurred"],
    )

    details: Any | None = Field(
        default=None,
        description="Structured error details (e.g., validation failures)",
        examples=[{"validation_errors": [{"field": "email", "msg": "invalid"}]}],
    )

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"code": "not-found", "message": "Order 42 not found"},
                {
                    "code": "unprocessable-entity",
                    "message": "Request validation failed",
                    "details": {
                        "validation_errors": [
                            {"field": "quantity", "msg": "Input should be > 0"}
                        ]
                    },
                },
                {
                    "code": "internal-error",
                    "message": "An internal server error occurred",
                },
            ]
        }
    }
