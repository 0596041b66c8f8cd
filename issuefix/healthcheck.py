"""Health check module for verifying external dependencies.

Checks that git is installed, the GitHub token is accepted and the LLM
provider is configured before the webhook server starts taking events.
"""
from __future__ import annotations

import shutil
import subprocess
import sys
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

import requests

from issuefix.config import Config
from issuefix.errors import UnsupportedProviderError
from issuefix.llm.providers import build_provider
from issuefix.utils.logger import log_error, log_info


@dataclass
class HealthCheckResult:
    """Result of a single health check."""
    service: str
    healthy: bool
    message: str
    details: Dict[str, Any] = field(default_factory=dict)


def _short(error: Exception) -> str:
    error_msg = str(error)
    if len(error_msg) > 100:
        error_msg = error_msg[:100] + "..."
    return error_msg


def check_git() -> HealthCheckResult:
    """Check that the git binary is available."""
    git = shutil.which("git")
    if not git:
        return HealthCheckResult(service="git", healthy=False, message="git not found on PATH")

    try:
        proc = subprocess.run([git, "--version"], capture_output=True, text=True, check=True)
    except (OSError, subprocess.CalledProcessError) as e:
        return HealthCheckResult(service="git", healthy=False, message=f"git failed: {_short(e)}")

    version = proc.stdout.strip()
    return HealthCheckResult(service="git", healthy=True, message=version, details={"path": git})


def check_github(config: Config) -> HealthCheckResult:
    """Check that the GitHub token is accepted by the API."""
    if not config.github_token:
        return HealthCheckResult(service="GitHub", healthy=False, message="Missing: GITHUB_TOKEN")

    try:
        response = requests.get(
            f"{config.github_api_url}/user",
            headers={
                "Authorization": f"Bearer {config.github_token}",
                "Accept": "application/vnd.github+json",
            },
            timeout=10,
        )
    except requests.RequestException as e:
        return HealthCheckResult(service="GitHub", healthy=False, message=f"Connection failed: {_short(e)}")

    if response.status_code == 200:
        try:
            login = response.json().get("login", "")
        except ValueError:
            return HealthCheckResult(service="GitHub", healthy=False, message="API returned a non-JSON response")
        return HealthCheckResult(
            service="GitHub",
            healthy=True,
            message=f"Connected as {login}",
            details={"login": login},
        )
    if response.status_code == 401:
        return HealthCheckResult(service="GitHub", healthy=False, message="Authentication failed (check GITHUB_TOKEN)")
    return HealthCheckResult(service="GitHub", healthy=False, message=f"API returned {response.status_code}")


def check_llm(config: Config) -> HealthCheckResult:
    """Check the provider selection and key without spending tokens."""
    if not config.llm_api_key:
        return HealthCheckResult(service="LLM", healthy=False, message="Missing: LLM_API_KEY")

    try:
        build_provider(config)
    except UnsupportedProviderError as e:
        return HealthCheckResult(service="LLM", healthy=False, message=str(e))

    return HealthCheckResult(
        service="LLM",
        healthy=True,
        message=f"Configured ({config.llm_provider}, model: {config.llm_model})",
        details={"provider": config.llm_provider, "model": config.llm_model},
    )


def run_health_checks(config: Config, verbose: bool = True) -> Tuple[bool, List[HealthCheckResult]]:
    """Run all health checks.

    Returns:
        Tuple of (all_healthy, list of results)
    """
    results = [check_git(), check_github(config), check_llm(config)]
    all_healthy = all(r.healthy for r in results)

    if verbose:
        print_health_report(results)

    for result in results:
        if result.healthy:
            log_info(f"Health check passed: {result.service}", **result.details)
        else:
            log_error(f"Health check failed: {result.service}", message=result.message)

    return all_healthy, results


def print_health_report(results: List[HealthCheckResult]) -> None:
    print("\nRunning health checks...\n")
    for result in results:
        icon = "OK  " if result.healthy else "FAIL"
        print(f"  [{icon}] {result.service}: {result.message}")
    print()
    failed = [r.service for r in results if not r.healthy]
    if failed:
        print(f"Health check failed for: {', '.join(failed)}\n")
    else:
        print("All services ready!\n")


if __name__ == "__main__":
    from dotenv import load_dotenv

    from issuefix.config import get_config

    load_dotenv()
    all_healthy, _ = run_health_checks(get_config())
    sys.exit(0 if all_healthy else 1)
