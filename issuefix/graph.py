"""Graph definition for the issue → pull request pipeline.

    clone → branch → context → model → patch → commit → push → pull_request → cleanup

Every stage has a conditional edge that jumps to ``cleanup`` as soon as the
state carries an error, so nothing after a failed stage runs. ``run_pipeline``
also releases the working copy in a ``finally`` block, which covers failures
that are not ``IssueFixError``.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from langgraph.graph import END, StateGraph

from issuefix.config import Config
from issuefix.context import CodebaseContextBuilder
from issuefix.errors import ConfigurationError, IssueFixError
from issuefix.github.pulls import PullRequestPublisher
from issuefix.llm.client import ChangeRequestClient
from issuefix.llm.providers import build_provider
from issuefix.models import IssueEvent, PipelineResult
from issuefix.nodes import (
    apply_changes,
    build_context,
    cleanup,
    clone_repo,
    commit_changes,
    create_branch,
    open_pull_request,
    push_branch,
    request_changes,
)
from issuefix.state import PipelineServices, PipelineState
from issuefix.utils.audit import AuditTrail
from issuefix.utils.logger import log_error, log_info
from issuefix.vcs.working_copy import WorkingCopyManager

STAGES = [
    ("clone_repo", clone_repo),
    ("create_branch", create_branch),
    ("build_context", build_context),
    ("request_changes", request_changes),
    ("apply_changes", apply_changes),
    ("commit_changes", commit_changes),
    ("push_branch", push_branch),
    ("open_pull_request", open_pull_request),
]


def _route(next_node: str):
    def route(state: Dict[str, Any]) -> str:
        return "cleanup" if state.get("error") is not None else next_node
    return route


def build_graph():
    """Compile and return the LangGraph graph for this pipeline."""
    builder = StateGraph(PipelineState)

    for name, node in STAGES:
        builder.add_node(name, node)
    builder.add_node("cleanup", cleanup)

    builder.set_entry_point(STAGES[0][0])
    for (name, _), (next_name, _) in zip(STAGES, STAGES[1:]):
        builder.add_conditional_edges(name, _route(next_name), {next_name: next_name, "cleanup": "cleanup"})
    builder.add_edge(STAGES[-1][0], "cleanup")
    builder.add_edge("cleanup", END)

    return builder.compile()


def build_services(config: Config) -> PipelineServices:
    """Wire the production collaborators from configuration.

    Raises ``UnsupportedProviderError`` for an unknown provider, before any
    clone or network call.
    """
    return PipelineServices(
        working_copy=WorkingCopyManager(config.temp_dir, config.github_token, windows=config.is_windows),
        context_builder=CodebaseContextBuilder(),
        change_client=ChangeRequestClient(build_provider(config)),
        publisher=PullRequestPublisher(
            token=config.github_token,
            api_url=config.github_api_url,
            base_branch=config.base_branch,
            timeout=config.github_timeout,
        ),
        audit=AuditTrail(config.audit_path),
    )


def run_pipeline(
    issue: IssueEvent,
    config: Optional[Config] = None,
    services: Optional[PipelineServices] = None,
) -> PipelineResult:
    """Run one issue through the whole pipeline and report the outcome.

    Expected failures come back in ``PipelineResult.error``; anything else
    propagates after the working copy has been released.
    """
    if services is None:
        if config is None:
            raise ConfigurationError("run_pipeline needs either a config or prepared services")
        try:
            services = build_services(config)
        except IssueFixError as e:
            log_error("Pipeline setup failed", error_type=type(e).__name__, error=str(e))
            return PipelineResult(issue=issue, error=e, failed_stage="setup")

    log_info("Pipeline run started", repo=issue.full_name, issue=issue.number)
    graph = build_graph()
    try:
        final = graph.invoke({"issue": issue, "services": services})
    finally:
        services.working_copy.cleanup()

    result = PipelineResult(
        issue=issue,
        pr_number=final.get("pr_number"),
        touched_files=list(final.get("touched_files") or []),
        error=final.get("error"),
        failed_stage=final.get("failed_stage"),
    )
    if result.error is None:
        log_info("Pipeline run finished", repo=issue.full_name, issue=issue.number, pr_number=result.pr_number)
    else:
        log_error(
            "Pipeline run aborted",
            repo=issue.full_name,
            issue=issue.number,
            stage=result.failed_stage,
            error_type=type(result.error).__name__,
        )
    return result
