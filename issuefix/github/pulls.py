from __future__ import annotations

from typing import Dict

import requests

from issuefix.errors import PullRequestCreationError
from issuefix.utils.logger import log_api_response, log_error, log_info

USER_AGENT = "issuefix-agent"


class PullRequestPublisher:
    """Opens pull requests that close the originating issue."""

    def __init__(
        self,
        token: str,
        api_url: str = "https://api.github.com",
        base_branch: str = "main",
        timeout: int = 30,
    ) -> None:
        self.token = token
        self.api_url = api_url.rstrip("/")
        self.base_branch = base_branch
        self.timeout = timeout

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/vnd.github+json",
            "User-Agent": USER_AGENT,
        }

    def open_pull_request(self, owner: str, repo: str, branch: str, issue_number: int, description: str) -> int:
        """Create the pull request and return its number."""
        url = f"{self.api_url}/repos/{owner}/{repo}/pulls"
        payload = {
            "title": f"Fix for issue #{issue_number}",
            "body": f"{description}\n\nCloses #{issue_number}",
            "head": branch,
            "base": self.base_branch,
        }
        try:
            resp = requests.post(url, headers=self._headers(), json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            log_error("Error creating PR", error=str(e), repo=f"{owner}/{repo}")
            raise PullRequestCreationError(f"Error creating PR: {e}") from e

        if not 200 <= resp.status_code < 300:
            message = resp.reason or f"HTTP {resp.status_code}"
            try:
                body = resp.json()
                if isinstance(body, dict) and body.get("message"):
                    message = str(body["message"])
            except ValueError:
                pass
            log_error("Failed to create PR", status_code=resp.status_code, error=message)
            raise PullRequestCreationError(f"Failed to create PR: {message}", status_code=resp.status_code)

        try:
            number = int(resp.json()["number"])
        except (ValueError, KeyError, TypeError) as e:
            raise PullRequestCreationError("PR response did not include a number", status_code=resp.status_code) from e

        log_api_response("GitHub pull request creation", resp.status_code)
        log_info("Created PR", number=number, repo=f"{owner}/{repo}", branch=branch)
        return number
