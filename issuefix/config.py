"""Configuration management using Pydantic BaseSettings.

A single ``Config`` instance is built at process start (from the environment
and an optional ``.env`` file) and passed explicitly to every component.
"""

from __future__ import annotations

import platform
import tempfile
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

SUPPORTED_PROVIDERS = ("openai", "anthropic")


def _default_temp_dir() -> str:
    return str(Path(tempfile.gettempdir()) / "issuefix")


def _default_os_type() -> str:
    return platform.system().lower() or "linux"


class Config(BaseSettings):
    """Process configuration."""

    # Pipeline options
    github_webhook_secret: str = Field("", description="Shared secret for webhook HMAC signatures")
    github_token: str = Field("", description="GitHub token used for clone, push and the REST API")
    llm_api_key: str = Field("", description="API key for the selected LLM provider")
    llm_model: str = Field("gpt-4.1", description="Model identifier sent to the provider")
    llm_provider: str = Field("openai", description="LLM provider: openai or anthropic")
    temp_dir: str = Field(default_factory=_default_temp_dir, description="Root directory for working copies")
    os_type: str = Field(default_factory=_default_os_type, description="OS family flag (windows, linux, darwin)")

    # Process tuning
    llm_timeout: int = Field(120, ge=5, le=600, description="Model request timeout in seconds")
    llm_max_tokens: int = Field(4096, ge=256, le=128000, description="Output token budget (Anthropic)")
    github_api_url: str = Field("https://api.github.com", description="GitHub REST API base URL")
    github_timeout: int = Field(30, ge=5, le=120, description="GitHub API request timeout in seconds")
    base_branch: str = Field("main", description="Branch pull requests are opened against")
    audit_path: str = Field(".issuefix/audit.jsonl", description="JSONL audit trail location")

    log_level: str = Field("INFO", description="Logging level")
    log_format: str = Field("%(asctime)s - %(name)s - %(levelname)s - %(message)s", description="Log format")

    host: str = Field("0.0.0.0", description="Bind address for the webhook server")
    port: int = Field(8000, ge=1, le=65535, description="Port for the webhook server")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }

    @field_validator("llm_provider", "os_type")
    @classmethod
    def normalize_lower(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("log_level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Valid options: {valid_levels}")
        return v.upper()

    @field_validator("github_api_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def is_windows(self) -> bool:
        return self.os_type == "windows"

    def validate_configuration(self) -> List[str]:
        """Validate the complete configuration and return any issues."""
        issues = []

        if not self.github_webhook_secret:
            issues.append("GITHUB_WEBHOOK_SECRET is required")
        if not self.github_token:
            issues.append("GITHUB_TOKEN is required")
        if not self.llm_api_key:
            issues.append("LLM_API_KEY is required")
        if self.llm_provider not in SUPPORTED_PROVIDERS:
            issues.append(f"LLM_PROVIDER must be one of: {', '.join(SUPPORTED_PROVIDERS)}")
        if not self.temp_dir.strip():
            issues.append("TEMP_DIR must not be empty")

        return issues

    def log_configuration(self) -> None:
        """Log the current configuration (secrets omitted)."""
        from issuefix.utils.logger import log_info

        log_info(
            "Configuration loaded",
            llm_provider=self.llm_provider,
            llm_model=self.llm_model,
            temp_dir=self.temp_dir,
            os_type=self.os_type,
            base_branch=self.base_branch,
            log_level=self.log_level,
        )


_config: Optional[Config] = None


def get_config() -> Config:
    """Return the process configuration, building it on first use.

    Only bootstrap code (``main.py``) should call this; components receive the
    ``Config`` object as a parameter.
    """
    global _config
    if _config is None:
        _config = Config()
    return _config


def reload_config() -> Config:
    """Rebuild configuration from environment variables."""
    global _config
    _config = Config()
    return _config
