"""Error taxonomy for the issue → pull request pipeline.

Every failure a pipeline stage can report derives from ``IssueFixError`` so the
graph nodes can turn it into explicit ``error``/``failed_stage`` state and let
the driver route straight to cleanup.
"""

from __future__ import annotations

from typing import Optional


class IssueFixError(Exception):
    """Base class for all expected pipeline failures."""


class AuthenticationError(IssueFixError):
    """Webhook signature missing or invalid."""


class InvalidPayloadError(IssueFixError):
    """A verified webhook payload does not describe an issue."""


class ConfigurationError(IssueFixError):
    """Process configuration is unusable."""


# ── Version control ──────────────────────────────────────────────


class VcsError(IssueFixError):
    """A git operation failed. ``output`` holds the combined stdout/stderr."""

    def __init__(self, message: str, output: str = "") -> None:
        super().__init__(message)
        self.output = output

    def __str__(self) -> str:
        base = super().__str__()
        if self.output:
            return f"{base}: {self.output.strip()}"
        return base


class StaleWorkingCopyError(VcsError):
    pass


class CloneError(VcsError):
    pass


class BranchError(VcsError):
    pass


class CommitError(VcsError):
    pass


class PushError(VcsError):
    pass


class WorkingCopyStateError(VcsError):
    """An operation was attempted out of order."""


# ── Line edits ───────────────────────────────────────────────────


class EditError(IssueFixError):
    """A structured edit cannot be applied."""


class InvalidRangeError(EditError):
    pass


class UnknownEditKindError(EditError):
    pass


class OverlappingEditError(EditError):
    pass


# ── Patch application ────────────────────────────────────────────


class PatchError(IssueFixError):
    """A change-set cannot be applied to the working copy."""


class MissingFileError(PatchError):
    pass


class UnsafePathError(PatchError):
    """Target path resolves outside the working copy."""


# ── LLM provider ─────────────────────────────────────────────────


class LLMError(IssueFixError):
    pass


class UnsupportedProviderError(LLMError):
    pass


class MalformedModelResponseError(LLMError):
    """The model reply could not be turned into a change response."""

    def __init__(self, message: str, raw_text: str = "") -> None:
        super().__init__(message)
        self.raw_text = raw_text


class ProviderHTTPError(LLMError):
    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ProviderRequestError(LLMError):
    pass


# ── Source host ──────────────────────────────────────────────────


class PullRequestCreationError(IssueFixError):
    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
