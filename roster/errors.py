"""
Roster Error Taxonomy

ValidationError, ReferenceError and ConflictError are recoverable by the
caller (fix the input, retry). They are raised before anything is
committed, and the service boundary turns them into failed envelopes
with the message intact.

IntegrityViolationError is never expected: it means a mutation would
have committed a dangling reference, and the transaction was rolled
back instead.
"""

from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from roster.models.results import ValidationIssue


class RosterError(Exception):
    """Base exception for roster operations."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(RosterError):
    """Malformed or type-mismatched input. Nothing was applied."""

    def __init__(
        self,
        message: str,
        issues: Optional[list[ValidationIssue]] = None,
    ):
        super().__init__(message)
        self.issues = issues or []

    @classmethod
    def from_issues(cls, issues: list[ValidationIssue]) -> "ValidationError":
        """Build one error out of several issues, leading with the first."""
        if len(issues) == 1:
            message = issues[0].message
        else:
            message = f"{issues[0].message} (and {len(issues) - 1} more issues)"
        return cls(message, issues)

    @classmethod
    def from_pydantic(cls, exc: PydanticValidationError) -> "ValidationError":
        """Translate a pydantic model error into a roster ValidationError."""
        issues = []
        for error in exc.errors():
            location = ".".join(str(part) for part in error["loc"]) or "input"
            issues.append(ValidationIssue(
                field=location,
                issue_type=error["type"],
                message=f"{location}: {error['msg']}",
            ))
        if not issues:
            issues.append(ValidationIssue(
                field="input",
                issue_type="invalid",
                message=str(exc),
            ))
        return cls.from_issues(issues)


class ReferenceError(RosterError):
    """An id does not resolve to a live entity in this organization."""
    pass


class ConflictError(RosterError):
    """The operation would break a relationship invariant."""
    pass


class IntegrityViolationError(Exception):
    """A commit would have left the store inconsistent; it was rolled back."""

    def __init__(self, violations: list[str]):
        super().__init__(
            f"Integrity check failed with {len(violations)} violation(s): "
            + "; ".join(violations[:5])
        )
        self.violations = violations
