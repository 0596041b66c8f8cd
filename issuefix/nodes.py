"""Pipeline stage implementations.

Each stage reads its inputs from the state and returns the updated state. A
stage that fails with an ``IssueFixError`` does not raise: it records the
error and its own name so the graph can route straight to ``cleanup``.
"""

from __future__ import annotations

from functools import wraps
from typing import Any, Callable, Dict

from issuefix.edits.applier import PatchApplier
from issuefix.errors import IssueFixError
from issuefix.state import PipelineServices
from issuefix.utils.logger import log_error, log_pipeline_stage

Stage = Callable[[Dict[str, Any]], Dict[str, Any]]


def _services(state: Dict[str, Any]) -> PipelineServices:
    return state["services"]


def _audit(state: Dict[str, Any], event: Dict[str, Any]) -> None:
    audit = _services(state).audit
    if audit is not None:
        issue = state["issue"]
        audit.append({"issue": f"{issue.full_name}#{issue.number}", **event})


def stage(name: str) -> Callable[[Stage], Stage]:
    def decorator(func: Stage) -> Stage:
        @wraps(func)
        def wrapper(state: Dict[str, Any]) -> Dict[str, Any]:
            log_pipeline_stage(name, issue=state["issue"].number)
            try:
                return func(state)
            except IssueFixError as e:
                log_error("Pipeline stage failed", stage=name, error_type=type(e).__name__, error=str(e))
                _audit(state, {"status": "run_failed", "stage": name, "error_type": type(e).__name__, "message": str(e)})
                return {**state, "error": e, "failed_stage": name}
        return wrapper
    return decorator


@stage("clone")
def clone_repo(state: Dict[str, Any]) -> Dict[str, Any]:
    issue = state["issue"]
    path = _services(state).working_copy.clone(issue.owner, issue.repo)
    _audit(state, {"status": "run_started", "path": str(path)})
    return {**state, "repo_path": str(path)}


@stage("branch")
def create_branch(state: Dict[str, Any]) -> Dict[str, Any]:
    branch = _services(state).working_copy.create_branch(state["issue"].number)
    return {**state, "branch": branch}


@stage("context")
def build_context(state: Dict[str, Any]) -> Dict[str, Any]:
    context = _services(state).context_builder.build(state["repo_path"])
    return {**state, "code_context": context}


@stage("model")
def request_changes(state: Dict[str, Any]) -> Dict[str, Any]:
    issue = state["issue"]
    response = _services(state).change_client.request_changes(state["code_context"], issue.title, issue.body)
    # The snapshot is not needed past the model call.
    return {**state, "change_response": response, "code_context": None}


@stage("patch")
def apply_changes(state: Dict[str, Any]) -> Dict[str, Any]:
    services = _services(state)
    applier = PatchApplier(services.working_copy.working_copy.root, audit=services.audit)
    touched = applier.apply(state["change_response"].changes)
    return {**state, "touched_files": touched}


@stage("commit")
def commit_changes(state: Dict[str, Any]) -> Dict[str, Any]:
    _services(state).working_copy.commit(state["change_response"].commit_message)
    return state


@stage("push")
def push_branch(state: Dict[str, Any]) -> Dict[str, Any]:
    _services(state).working_copy.push()
    return state


@stage("pull_request")
def open_pull_request(state: Dict[str, Any]) -> Dict[str, Any]:
    issue = state["issue"]
    number = _services(state).publisher.open_pull_request(
        issue.owner,
        issue.repo,
        state["branch"],
        issue.number,
        state["change_response"].pr_description,
    )
    _audit(state, {"status": "pr_opened", "pr_number": number, "branch": state["branch"]})
    return {**state, "pr_number": number}


def cleanup(state: Dict[str, Any]) -> Dict[str, Any]:
    """Release the working copy. Runs on every path and never fails the run."""
    removed = _services(state).working_copy.cleanup()
    _audit(state, {"status": "cleaned", "removed": removed, "failed_stage": state.get("failed_stage")})
    return {**state, "cleaned": True}
