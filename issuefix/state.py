"""Shared state types for the issue → pull request pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, TypedDict

from issuefix.context import CodebaseContextBuilder
from issuefix.github.pulls import PullRequestPublisher
from issuefix.llm.client import ChangeRequestClient
from issuefix.models import ChangeResponse, CodeContext, IssueEvent
from issuefix.utils.audit import AuditTrail
from issuefix.vcs.working_copy import WorkingCopyManager


@dataclass(frozen=True)
class PipelineServices:
    """Collaborators for one run, injected into the graph state."""

    working_copy: WorkingCopyManager
    context_builder: CodebaseContextBuilder
    change_client: ChangeRequestClient
    publisher: PullRequestPublisher
    audit: Optional[AuditTrail] = None


class PipelineState(TypedDict, total=False):
    # Injected at invocation
    issue: IssueEvent
    services: PipelineServices

    # Produced by the stages, in order
    repo_path: str
    branch: str
    code_context: Optional[CodeContext]
    change_response: ChangeResponse
    touched_files: List[str]
    pr_number: int

    # Failure reporting: set by the first failing stage
    error: Optional[Exception]
    failed_stage: Optional[str]

    cleaned: bool
