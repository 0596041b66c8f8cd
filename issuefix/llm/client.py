"""Turn a code context and an issue into a validated change response."""

from __future__ import annotations

import json
from typing import Union

from pydantic import ValidationError

from issuefix.errors import MalformedModelResponseError
from issuefix.llm.json_sanitizer import parse_llm_json, strip_code_fences
from issuefix.llm.prompt import build_change_prompt
from issuefix.llm.providers import ChatProvider
from issuefix.models import ChangeResponse, CodeContext
from issuefix.utils.logger import log_error, log_info


def parse_change_response(raw_text: str) -> ChangeResponse:
    """Parse a raw model reply into a ``ChangeResponse``.

    Raises:
        MalformedModelResponseError: reply is not valid JSON of the expected
            shape; ``raw_text`` keeps the original reply.
    """
    cleaned = strip_code_fences(raw_text or "")
    try:
        data = parse_llm_json(cleaned)
    except (json.JSONDecodeError, ValueError) as e:
        raise MalformedModelResponseError(f"Failed to parse AI response as JSON: {e}", raw_text=raw_text) from e

    try:
        return ChangeResponse.model_validate(data)
    except ValidationError as e:
        raise MalformedModelResponseError(
            f"AI response does not match the change format: {e.error_count()} error(s); {e.errors()[0]['msg']}",
            raw_text=raw_text,
        ) from e


class ChangeRequestClient:
    """Single-shot change request against one provider; no retries."""

    def __init__(self, provider: ChatProvider) -> None:
        self.provider = provider

    def request_changes(self, context: Union[CodeContext, str], issue_title: str, issue_body: str) -> ChangeResponse:
        prompt = build_change_prompt(context, issue_title, issue_body)
        log_info("Requesting changes from model", provider=self.provider.name, prompt_chars=len(prompt))

        raw_text = self.provider.complete(prompt)
        try:
            response = parse_change_response(raw_text)
        except MalformedModelResponseError:
            log_error("Model reply could not be parsed", provider=self.provider.name, reply_chars=len(raw_text or ""))
            raise

        log_info(
            "Model proposed changes",
            files=[change_set.file for change_set in response.changes],
            edits=sum(len(change_set.changes) for change_set in response.changes),
        )
        return response
