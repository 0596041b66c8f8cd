"""Unit tests for the webhook gateway."""

import json
from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from conftest import TEST_SECRET
from issuefix.errors import CloneError
from issuefix.models import IssueEvent, PipelineResult
from issuefix.webhook.app import SIGNATURE_HEADER, compute_signature, create_app, verify_signature


@pytest.fixture
def runner():
    mock = Mock()
    mock.side_effect = lambda issue, config: PipelineResult(issue=issue, pr_number=7)
    return mock


@pytest.fixture
def client(config, runner):
    return TestClient(create_app(config, runner=runner))


def post(client, body: bytes, signature=None, path="/webhook", event="issues"):
    headers = {"Content-Type": "application/json", "X-GitHub-Event": event}
    if signature is not None:
        headers[SIGNATURE_HEADER] = signature
    return client.post(path, content=body, headers=headers)


class TestVerifySignature:
    def test_valid(self, payload_bytes):
        assert verify_signature(payload_bytes, compute_signature(payload_bytes, TEST_SECRET), TEST_SECRET)

    def test_signature_format(self, payload_bytes):
        signature = compute_signature(payload_bytes, TEST_SECRET)
        assert signature.startswith("sha256=")
        assert len(signature) == len("sha256=") + 64

    def test_every_single_character_change_is_rejected(self, payload_bytes):
        signature = compute_signature(payload_bytes, TEST_SECRET)
        prefix = len("sha256=")
        for i in range(prefix, len(signature)):
            flipped = "0" if signature[i] != "0" else "1"
            tampered = signature[:i] + flipped + signature[i + 1:]
            assert not verify_signature(payload_bytes, tampered, TEST_SECRET), f"accepted change at {i}"

    @pytest.mark.parametrize("replacement", ["é", "ÿ", "☃"])
    def test_non_ascii_character_is_rejected(self, payload_bytes, replacement):
        signature = compute_signature(payload_bytes, TEST_SECRET)
        for i in (len("sha256="), len(signature) - 1):
            tampered = signature[:i] + replacement + signature[i + 1:]
            assert not verify_signature(payload_bytes, tampered, TEST_SECRET)

    def test_every_single_body_byte_change_is_rejected(self, payload_bytes):
        signature = compute_signature(payload_bytes, TEST_SECRET)
        for i in range(len(payload_bytes)):
            tampered = payload_bytes[:i] + bytes([payload_bytes[i] ^ 0x01]) + payload_bytes[i + 1:]
            assert not verify_signature(tampered, signature, TEST_SECRET), f"accepted change at byte {i}"

    def test_tampered_body_is_rejected(self, payload_bytes):
        signature = compute_signature(payload_bytes, TEST_SECRET)
        assert not verify_signature(payload_bytes + b" ", signature, TEST_SECRET)

    @pytest.mark.parametrize("body,signature,secret", [
        (b"", "sha256=abc", TEST_SECRET),
        (b"{}", None, TEST_SECRET),
        (b"{}", "", TEST_SECRET),
        (b"{}", "sha256=abc", ""),
    ])
    def test_missing_parts(self, body, signature, secret):
        assert not verify_signature(body, signature, secret)

    def test_other_digest_prefix_is_rejected(self, payload_bytes):
        signature = compute_signature(payload_bytes, TEST_SECRET).replace("sha256=", "sha1=")
        assert not verify_signature(payload_bytes, signature, TEST_SECRET)

    def test_wrong_secret(self, payload_bytes):
        assert not verify_signature(payload_bytes, compute_signature(payload_bytes, "other"), TEST_SECRET)


class TestWebhookEndpoint:
    def test_valid_issue_event_runs_pipeline(self, client, runner, config, payload_bytes, sign):
        response = post(client, payload_bytes, sign(payload_bytes))

        assert response.status_code == 200
        assert response.json() == {"status": "Webhook processed"}
        runner.assert_called_once()
        issue, passed_config = runner.call_args[0]
        assert issue == IssueEvent(
            owner="acme",
            repo="demo",
            number=42,
            title="Greeting is misspelled",
            body="The app prints 'Helo' instead of 'Hello'.",
        )
        assert passed_config is config

    def test_root_path_is_also_accepted(self, client, runner, payload_bytes, sign):
        response = post(client, payload_bytes, sign(payload_bytes), path="/")
        assert response.status_code == 200
        runner.assert_called_once()

    def test_invalid_signature(self, client, runner, payload_bytes, sign):
        response = post(client, payload_bytes, sign(payload_bytes, "wrong-secret"))

        assert response.status_code == 401
        assert response.json() == {"error": "Invalid signature"}
        runner.assert_not_called()

    def test_non_ascii_signature_header_is_unauthorized(self, client, runner, payload_bytes, sign):
        signature = sign(payload_bytes)
        tampered = (signature[:-1] + "é").encode("latin-1")

        response = post(client, payload_bytes, tampered)

        assert response.status_code == 401
        assert response.json() == {"error": "Invalid signature"}
        runner.assert_not_called()

    def test_missing_signature(self, client, runner, payload_bytes):
        response = post(client, payload_bytes)
        assert response.status_code == 401
        runner.assert_not_called()

    def test_empty_secret_rejects_everything(self, config, runner, payload_bytes):
        app = create_app(config.model_copy(update={"github_webhook_secret": ""}), runner=runner)
        response = post(TestClient(app), payload_bytes, compute_signature(payload_bytes, ""))
        assert response.status_code == 401
        runner.assert_not_called()

    def test_non_issue_event_is_ignored(self, client, runner, sign):
        body = json.dumps({"zen": "Keep it logically awesome.", "hook_id": 1}).encode()
        response = post(client, body, sign(body), event="ping")

        assert response.status_code == 200
        assert response.json() == {"status": "ignored"}
        runner.assert_not_called()

    def test_invalid_json_is_ignored(self, client, runner, sign):
        body = b"{not json"
        response = post(client, body, sign(body))

        assert response.status_code == 200
        assert response.json() == {"status": "ignored"}
        runner.assert_not_called()

    def test_pipeline_failure_still_acknowledged(self, client, runner, payload_bytes, sign):
        runner.side_effect = lambda issue, config: PipelineResult(
            issue=issue, error=CloneError("Failed to clone"), failed_stage="clone"
        )
        response = post(client, payload_bytes, sign(payload_bytes))

        assert response.status_code == 200
        assert response.json() == {"status": "Webhook processed"}

    def test_pipeline_crash_still_acknowledged(self, client, runner, payload_bytes, sign):
        runner.side_effect = RuntimeError("unexpected")
        response = post(client, payload_bytes, sign(payload_bytes))

        assert response.status_code == 200
        assert response.json() == {"status": "Webhook processed"}

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}
