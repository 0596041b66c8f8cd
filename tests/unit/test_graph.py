"""Unit tests for the LangGraph pipeline."""

from unittest.mock import Mock, patch

import pytest

from conftest import TEST_TOKEN, FakeGit
from issuefix.context import CodebaseContextBuilder
from issuefix.errors import (
    CloneError,
    ConfigurationError,
    MalformedModelResponseError,
    MissingFileError,
    PullRequestCreationError,
    PushError,
    UnsupportedProviderError,
)
from issuefix.graph import build_graph, run_pipeline
from issuefix.models import ChangeResponse, FileChangeSet, FileEdit
from issuefix.nodes import stage
from issuefix.state import PipelineServices
from issuefix.utils.audit import AuditTrail
from issuefix.vcs.working_copy import WorkingCopyManager


def fix_greeting(file="app.py"):
    return ChangeResponse(
        changes=[
            FileChangeSet(
                file=file,
                changes=[FileEdit(type="replace", start_line=1, end_line=1, content="print('Hello')")],
            )
        ],
        commit_message="Fix greeting",
        pr_description="Corrects the greeting.",
    )


@pytest.fixture
def git():
    fake = FakeGit(files={"app.py": "print('Helo')\n", "lib/util.py": "X = 1\n"})
    with patch("issuefix.vcs.working_copy.subprocess.run", side_effect=fake):
        yield fake


@pytest.fixture
def services(tmp_path):
    change_client = Mock()
    change_client.request_changes.return_value = fix_greeting()
    publisher = Mock()
    publisher.open_pull_request.return_value = 7
    return PipelineServices(
        working_copy=WorkingCopyManager(tmp_path / "work", TEST_TOKEN),
        context_builder=CodebaseContextBuilder(),
        change_client=change_client,
        publisher=publisher,
        audit=AuditTrail(tmp_path / "audit.jsonl"),
    )


def repo_dir(tmp_path):
    return tmp_path / "work" / "acme" / "demo"


class TestRunPipeline:
    def test_success_opens_pull_request_and_cleans_up(self, git, services, sample_issue, tmp_path):
        result = run_pipeline(sample_issue, services=services)

        assert result.succeeded
        assert result.pr_number == 7
        assert result.touched_files == ["app.py"]
        assert git.commands() == ["clone", "checkout", "add", "commit", "config", "push"]
        assert git.committed["app.py"] == "print('Hello')\n"
        assert git.committed["lib/util.py"] == "X = 1\n"
        services.publisher.open_pull_request.assert_called_once_with(
            "acme", "demo", "fix-for-issue-42", 42, "Corrects the greeting."
        )
        assert not repo_dir(tmp_path).exists()

    def test_model_sees_context_and_issue(self, git, services, sample_issue):
        run_pipeline(sample_issue, services=services)

        context, title, body = services.change_client.request_changes.call_args[0]
        assert dict(context.files) == {"app.py": "print('Helo')\n", "lib/util.py": "X = 1\n"}
        assert title == "Greeting is misspelled"
        assert body == "The app prints 'Helo' instead of 'Hello'."

    def test_audit_trail_records_run(self, git, services, sample_issue):
        run_pipeline(sample_issue, services=services)

        events = services.audit.read()
        assert [e["status"] for e in events] == ["run_started", "file_patched", "pr_opened", "cleaned"]
        assert all(e.get("issue", "acme/demo#42") == "acme/demo#42" for e in events)
        assert events[-1]["removed"] is True

    def test_missing_file_stops_before_commit(self, git, services, sample_issue, tmp_path):
        services.change_client.request_changes.return_value = fix_greeting(file="missing.py")

        result = run_pipeline(sample_issue, services=services)

        assert not result.succeeded
        assert result.failed_stage == "patch"
        assert isinstance(result.error, MissingFileError)
        assert git.commands() == ["clone", "checkout"]
        services.publisher.open_pull_request.assert_not_called()
        assert not repo_dir(tmp_path).exists()
        statuses = [e["status"] for e in services.audit.read()]
        assert statuses == ["run_started", "run_failed", "cleaned"]

    def test_clone_failure_skips_everything(self, git, services, sample_issue):
        git.fail["clone"] = (128, "fatal: repository 'acme/demo' not found")

        result = run_pipeline(sample_issue, services=services)

        assert result.failed_stage == "clone"
        assert isinstance(result.error, CloneError)
        assert git.commands() == ["clone"]
        services.change_client.request_changes.assert_not_called()
        assert services.audit.read()[-1]["removed"] is False

    def test_malformed_model_reply(self, git, services, sample_issue):
        services.change_client.request_changes.side_effect = MalformedModelResponseError("bad", raw_text="nope")

        result = run_pipeline(sample_issue, services=services)

        assert result.failed_stage == "model"
        assert git.commands() == ["clone", "checkout"]

    def test_push_failure_skips_pull_request(self, git, services, sample_issue):
        git.fail["push"] = (1, "rejected")

        result = run_pipeline(sample_issue, services=services)

        assert result.failed_stage == "push"
        assert isinstance(result.error, PushError)
        services.publisher.open_pull_request.assert_not_called()

    def test_pull_request_failure(self, git, services, sample_issue, tmp_path):
        services.publisher.open_pull_request.side_effect = PullRequestCreationError(
            "Failed to create PR: Validation Failed", status_code=422
        )

        result = run_pipeline(sample_issue, services=services)

        assert result.failed_stage == "pull_request"
        assert result.pr_number is None
        assert not repo_dir(tmp_path).exists()

    def test_unexpected_error_propagates_after_cleanup(self, git, services, sample_issue, tmp_path):
        services.change_client.request_changes.side_effect = RuntimeError("bug")

        with pytest.raises(RuntimeError, match="bug"):
            run_pipeline(sample_issue, services=services)

        assert not repo_dir(tmp_path).exists()

    def test_unsupported_provider_fails_at_setup(self, config, sample_issue):
        config = config.model_copy(update={"llm_provider": "gemini"})
        with patch("issuefix.vcs.working_copy.subprocess.run") as mock_run:
            result = run_pipeline(sample_issue, config)

        assert result.failed_stage == "setup"
        assert isinstance(result.error, UnsupportedProviderError)
        mock_run.assert_not_called()

    def test_requires_config_or_services(self, sample_issue):
        with pytest.raises(ConfigurationError):
            run_pipeline(sample_issue)


class TestGraphStructure:
    def test_graph_compiles_with_all_stages(self):
        graph = build_graph()
        nodes = set(graph.get_graph().nodes)
        assert {
            "clone_repo",
            "create_branch",
            "build_context",
            "request_changes",
            "apply_changes",
            "commit_changes",
            "push_branch",
            "open_pull_request",
            "cleanup",
        } <= nodes

    def test_stage_decorator_records_failure(self, sample_issue):
        @stage("demo")
        def failing(state):
            raise MissingFileError("gone.py")

        services = Mock(audit=None)
        result = failing({"issue": sample_issue, "services": services})

        assert result["failed_stage"] == "demo"
        assert isinstance(result["error"], MissingFileError)

    def test_stage_decorator_passes_other_errors_through(self, sample_issue):
        @stage("demo")
        def broken(state):
            raise KeyError("repo_path")

        with pytest.raises(KeyError):
            broken({"issue": sample_issue, "services": Mock(audit=None)})
