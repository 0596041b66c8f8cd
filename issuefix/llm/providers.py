"""LLM provider backends.

Two concrete backends behind one capability: send a prompt, get raw text
back. Selection is a closed ``Provider`` enum; ``build_provider`` rejects
anything else before a request is made.

- ``openai``:    POST ``/v1/responses`` with bearer auth
- ``anthropic``: POST ``/v1/messages`` with ``x-api-key`` and a max-token budget
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional, Protocol

import requests

from issuefix.config import Config
from issuefix.errors import (
    MalformedModelResponseError,
    ProviderHTTPError,
    ProviderRequestError,
    UnsupportedProviderError,
)
from issuefix.utils.logger import log_api_response, log_error, log_info

OPENAI_BASE_URL = "https://api.openai.com/v1"
ANTHROPIC_BASE_URL = "https://api.anthropic.com/v1"
ANTHROPIC_VERSION = "2023-06-01"


class Provider(str, Enum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"


class ChatProvider(Protocol):
    name: str

    def complete(self, prompt: str) -> str:
        """Send ``prompt`` and return the model's raw text reply."""


def _error_message(resp: requests.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:500] or resp.reason or f"HTTP {resp.status_code}"
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str):
            return error
        if body.get("message"):
            return str(body["message"])
    return resp.reason or f"HTTP {resp.status_code}"


def _post_json(provider: str, url: str, headers: Dict[str, str], payload: Dict[str, Any], timeout: int) -> Dict[str, Any]:
    try:
        resp = requests.post(url, headers=headers, json=payload, timeout=timeout)
    except requests.RequestException as e:
        log_error("LLM request failed", provider=provider, error=str(e))
        raise ProviderRequestError(f"Error calling AI provider {provider}: {e}") from e

    if 400 <= resp.status_code < 500:
        message = _error_message(resp)
        log_error("LLM provider rejected request", provider=provider, status_code=resp.status_code, error=message)
        raise ProviderHTTPError(f"AI API Error: {message}", status_code=resp.status_code)
    if resp.status_code >= 300:
        log_error("LLM provider error", provider=provider, status_code=resp.status_code)
        raise ProviderRequestError(
            f"Error calling AI provider {provider}: HTTP {resp.status_code} {_error_message(resp)}"
        )

    log_api_response(f"{provider} completion", resp.status_code)
    try:
        body = resp.json()
    except ValueError as e:
        raise MalformedModelResponseError(f"{provider} returned a non-JSON body", raw_text=resp.text) from e
    if not isinstance(body, dict):
        raise MalformedModelResponseError(f"{provider} returned an unexpected body", raw_text=resp.text)
    return body


class OpenAIResponsesProvider:
    name = Provider.OPENAI.value

    def __init__(self, api_key: str, model: str, timeout: int = 120, base_url: str = OPENAI_BASE_URL) -> None:
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.base_url = base_url.rstrip("/")

    @staticmethod
    def extract_text(body: Dict[str, Any]) -> Optional[str]:
        """Return the text of the assistant message item.

        Reasoning models emit a ``reasoning`` item first, so the message is
        usually ``output[1]``; the item is located by type rather than index.
        """
        output: List[Any] = body.get("output") or []
        candidates = [item for item in output if isinstance(item, dict) and item.get("type") == "message"]
        if not candidates and len(output) > 1 and isinstance(output[1], dict):
            candidates = [output[1]]
        for item in candidates:
            for part in item.get("content") or []:
                if isinstance(part, dict) and isinstance(part.get("text"), str):
                    return part["text"]
        return None

    def complete(self, prompt: str) -> str:
        body = _post_json(
            self.name,
            f"{self.base_url}/responses",
            {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"},
            {"model": self.model, "input": [{"role": "user", "content": prompt}]},
            self.timeout,
        )
        text = self.extract_text(body)
        if text is None:
            raise MalformedModelResponseError("OpenAI reply has no message text", raw_text=str(body)[:2000])
        return text


class AnthropicMessagesProvider:
    name = Provider.ANTHROPIC.value

    def __init__(
        self,
        api_key: str,
        model: str,
        max_tokens: int = 4096,
        timeout: int = 120,
        base_url: str = ANTHROPIC_BASE_URL,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.base_url = base_url.rstrip("/")

    def complete(self, prompt: str) -> str:
        body = _post_json(
            self.name,
            f"{self.base_url}/messages",
            {
                "x-api-key": self.api_key,
                "anthropic-version": ANTHROPIC_VERSION,
                "Content-Type": "application/json",
            },
            {
                "model": self.model,
                "messages": [{"role": "user", "content": prompt}],
                "max_tokens": self.max_tokens,
            },
            self.timeout,
        )
        content = body.get("content") or []
        if not content or not isinstance(content[0], dict) or not isinstance(content[0].get("text"), str):
            raise MalformedModelResponseError("Anthropic reply has no text content", raw_text=str(body)[:2000])
        return content[0]["text"]


def build_provider(config: Config) -> ChatProvider:
    """Instantiate the configured backend."""
    try:
        provider = Provider(config.llm_provider)
    except ValueError:
        raise UnsupportedProviderError(f"Unsupported AI provider: {config.llm_provider}") from None

    log_info("Using LLM provider", provider=provider.value, model=config.llm_model)
    if provider is Provider.ANTHROPIC:
        return AnthropicMessagesProvider(
            api_key=config.llm_api_key,
            model=config.llm_model,
            max_tokens=config.llm_max_tokens,
            timeout=config.llm_timeout,
        )
    return OpenAIResponsesProvider(
        api_key=config.llm_api_key,
        model=config.llm_model,
        timeout=config.llm_timeout,
    )
