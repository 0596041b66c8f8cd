"""Secure logging utilities for the pipeline.

Provides sanitized logging that removes credentials (tokens embedded in git
remote URLs, API keys) before anything reaches the log output.
"""
import json
import logging
import re
from typing import Any, Dict, Optional

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)

logger = logging.getLogger('issuefix')


def configure_logging(level: str = "INFO", fmt: Optional[str] = None) -> None:
    """Apply level and format from configuration to the root handler."""
    root = logging.getLogger()
    root.setLevel(level)
    if fmt:
        for handler in root.handlers:
            handler.setFormatter(logging.Formatter(fmt, datefmt='%Y-%m-%d %H:%M:%S'))
    logger.setLevel(level)


def sanitize_text(text: str) -> str:
    """Remove sensitive information from text.

    Args:
        text: Input text that may contain sensitive data

    Returns:
        Sanitized text with sensitive patterns replaced
    """
    if not text:
        return text

    # Credentials embedded in URLs: https://<token>@host or https://user:<token>@host
    text = re.sub(r'(https?://)[^/\s@]+@', r'\1***@', text)

    # API keys and tokens (common patterns)
    text = re.sub(r'github_pat_[A-Za-z0-9_]{20,}', '<github-token>', text)
    text = re.sub(r'gh[pousr]_[A-Za-z0-9]{36,}', '<github-token>', text)
    text = re.sub(r'sk-[A-Za-z0-9_-]{20,}', '<api-key>', text)
    text = re.sub(r'\b[A-Za-z0-9]{41,}\b', '<token>', text)

    return text


def redact(text: str, *secrets: str) -> str:
    """Replace every occurrence of the given secret values, then sanitize."""
    for secret in secrets:
        if secret:
            text = text.replace(secret, "***")
    return sanitize_text(text)


def safe_json(obj: Any, max_length: int = 1000) -> str:
    """Safely serialize object to JSON with sensitive data sanitized.

    Args:
        obj: Object to serialize
        max_length: Maximum length of output string

    Returns:
        Sanitized JSON string
    """
    try:
        json_str = json.dumps(obj, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return "<unable to serialize>"

    sanitized = sanitize_text(json_str)
    if len(sanitized) > max_length:
        sanitized = sanitized[:max_length] + "... [truncated]"
    return sanitized


def log_info(message: str, /, **kwargs) -> None:
    """Log info message with optional sanitized context."""
    if kwargs:
        logger.info(f"{message} | Context: {safe_json(kwargs)}")
    else:
        logger.info(message)


def log_warning(message: str, /, **kwargs) -> None:
    """Log warning message with optional sanitized context."""
    if kwargs:
        logger.warning(f"{message} | Context: {safe_json(kwargs)}")
    else:
        logger.warning(message)


def log_error(message: str, /, **kwargs) -> None:
    """Log error message with optional sanitized context."""
    if kwargs:
        logger.error(f"{message} | Context: {safe_json(kwargs)}")
    else:
        logger.error(message)


def log_debug(message: str, /, **kwargs) -> None:
    """Log debug message with optional sanitized context."""
    if kwargs:
        logger.debug(f"{message} | Context: {safe_json(kwargs)}")
    else:
        logger.debug(message)


def log_api_response(operation: str, status_code: int, response_data: Optional[Dict] = None) -> None:
    """Log API response with sanitized data."""
    if response_data:
        log_info(f"API {operation} completed",
                 status_code=status_code,
                 response_preview=safe_json(response_data, max_length=500))
    else:
        log_info(f"API {operation} completed", status_code=status_code)


def log_pipeline_stage(stage: str, **kwargs) -> None:
    """Log pipeline progress through its stages."""
    log_info(f"Pipeline stage: {stage}", **kwargs)
