"""
Result Models

The envelope returned across the service boundary, and the issue
records validation failures are reported with.
"""

import copy
from typing import Generic, Optional, TypeVar
from uuid import UUID

from pydantic import BaseModel, Field


T = TypeVar("T")


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'type_mismatch', 'unknown_field')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


class ApiResponse(BaseModel, Generic[T]):
    """
    Uniform result of every public operation.

    Failures never raise past the service boundary: they come back with
    success=False and a message the presentation layer shows verbatim.
    """

    success: bool
    message: str = ""
    data: Optional[T] = None
    count: Optional[int] = None
    issues: list[ValidationIssue] = Field(default_factory=list)

    @classmethod
    def ok(
        cls,
        data: Optional[T] = None,
        message: str = "OK",
        count: Optional[int] = None,
    ) -> "ApiResponse[T]":
        """
        Successful result carrying a deep copy of `data`.

        Records handed out never share objects with the committed
        state, so a caller editing a result cannot change the store.
        """
        return cls(success=True, message=message, data=copy.deepcopy(data), count=count)

    @classmethod
    def fail(
        cls,
        message: str,
        issues: Optional[list[ValidationIssue]] = None,
    ) -> "ApiResponse[T]":
        return cls(success=False, message=message, issues=issues or [])


class ImportRowResult(BaseModel):
    """Outcome of importing one spreadsheet row."""

    row_number: int = Field(..., ge=1, description="1-based data row number")
    success: bool
    person_id: Optional[UUID] = None
    message: str = ""
    issues: list[ValidationIssue] = Field(default_factory=list)
