"""Disposable git working copies: clone, branch, commit, push, cleanup.

The access token only ever appears in the remote URLs handed to git; every
message built from git output goes through ``redact`` first.
"""

from __future__ import annotations

import re
import subprocess
import time
import uuid
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import Iterator, Optional, Sequence, Union

from issuefix.errors import (
    BranchError,
    CloneError,
    CommitError,
    PushError,
    StaleWorkingCopyError,
    WorkingCopyStateError,
)
from issuefix.models import WorkingCopy
from issuefix.utils.fs import remove_tree
from issuefix.utils.logger import log_error, log_info, log_warning, redact

GIT_HOST = "github.com"
BOT_NAME = "issuefix-bot"
BOT_EMAIL = "issuefix-bot@users.noreply.github.com"

STALE_POLL_ATTEMPTS = 10
STALE_POLL_INTERVAL = 0.1


class CopyState(str, Enum):
    UNINITIALIZED = "uninitialized"
    CLONED = "cloned"
    BRANCHED = "branched"
    COMMITTED = "committed"
    PUSHED = "pushed"
    CLEANED = "cleaned"


def branch_name_for_issue(issue_number: int) -> str:
    return f"fix-for-issue-{issue_number}"


def _token_url(token: str, owner: str, repo: str) -> str:
    return f"https://{token}@{GIT_HOST}/{owner}/{repo}.git"


def _embed_token(remote_url: str, token: str) -> str:
    return re.sub(
        rf"^https://([^@/]+@)?{re.escape(GIT_HOST)}/",
        f"https://{token}@{GIT_HOST}/",
        remote_url.strip(),
    )


class WorkingCopyManager:
    """Owns one working copy for one pipeline run.

    States move ``UNINITIALIZED → CLONED → BRANCHED → COMMITTED → PUSHED``;
    ``cleanup`` moves any state to ``CLEANED`` and is safe to call repeatedly.
    """

    def __init__(self, temp_dir: Union[str, Path], token: str, windows: bool = False) -> None:
        self.temp_dir = Path(temp_dir)
        self.token = token
        self.windows = windows
        self.state = CopyState.UNINITIALIZED
        self.path: Optional[Path] = None
        self.branch: Optional[str] = None
        self.run_id = uuid.uuid4().hex[:12]

    # ------------------------------------------------------------------ helpers

    def path_for(self, owner: str, repo: str) -> Path:
        return self.temp_dir / owner / repo

    def _git(self, args: Sequence[str], cwd: Optional[Path] = None) -> subprocess.CompletedProcess:
        return subprocess.run(
            ["git", *args],
            cwd=str(cwd) if cwd else None,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            check=False,
        )

    def _output(self, proc: subprocess.CompletedProcess) -> str:
        return redact(proc.stdout or "", self.token)

    def _require(self, *allowed: CopyState) -> Path:
        if self.state not in allowed or self.path is None:
            raise WorkingCopyStateError(
                f"Operation not allowed in state '{self.state.value}' "
                f"(expected one of: {', '.join(s.value for s in allowed)})"
            )
        return self.path

    def _purge_stale(self, dest: Path) -> None:
        if not dest.exists():
            return
        log_warning("Removing stale working copy", path=str(dest))
        try:
            remove_tree(dest, windows=self.windows)
        except OSError as e:
            log_error("Failed to delete stale working copy", path=str(dest), error=str(e))
        attempts = 0
        while dest.exists() and attempts < STALE_POLL_ATTEMPTS:
            time.sleep(STALE_POLL_INTERVAL)
            attempts += 1
        if dest.exists():
            raise StaleWorkingCopyError(f"Failed to delete existing working copy at {dest}")

    # --------------------------------------------------------------- lifecycle

    @property
    def working_copy(self) -> WorkingCopy:
        path = self._require(CopyState.BRANCHED, CopyState.COMMITTED, CopyState.PUSHED)
        return WorkingCopy(root=path, branch=self.branch or "", run_id=self.run_id)

    def clone(self, owner: str, repo: str) -> Path:
        if self.state is not CopyState.UNINITIALIZED:
            raise WorkingCopyStateError(f"Cannot clone in state '{self.state.value}'")

        dest = self.path_for(owner, repo)
        self._purge_stale(dest)
        dest.parent.mkdir(parents=True, exist_ok=True)
        self.path = dest

        proc = self._git(["clone", _token_url(self.token, owner, repo), str(dest)])
        if proc.returncode != 0:
            output = self._output(proc)
            log_error("Failed to clone repository", repo=f"{owner}/{repo}", output=output)
            raise CloneError(f"Failed to clone repository {owner}/{repo}", output)

        self.state = CopyState.CLONED
        log_info("Cloned repository", repo=f"{owner}/{repo}", path=str(dest))
        return dest

    def create_branch(self, issue_number: int) -> str:
        path = self._require(CopyState.CLONED)
        branch = branch_name_for_issue(issue_number)
        proc = self._git(["checkout", "-b", branch], cwd=path)
        if proc.returncode != 0:
            output = self._output(proc)
            log_error("Failed to create branch", branch=branch, output=output)
            raise BranchError(f"Failed to create branch {branch}", output)

        self.branch = branch
        self.state = CopyState.BRANCHED
        log_info("Created branch", branch=branch)
        return branch

    def commit(self, message: str) -> None:
        path = self._require(CopyState.BRANCHED)
        stage = self._git(["add", "-A"], cwd=path)
        if stage.returncode != 0:
            output = self._output(stage)
            log_error("Failed to stage changes", output=output)
            raise CommitError("Failed to stage changes", output)

        proc = self._git(
            ["-c", f"user.name={BOT_NAME}", "-c", f"user.email={BOT_EMAIL}", "commit", "-m", message],
            cwd=path,
        )
        if proc.returncode != 0:
            output = self._output(proc)
            log_error("Failed to commit changes", output=output)
            raise CommitError("Failed to commit changes", output)

        self.state = CopyState.COMMITTED
        log_info("Committed changes", branch=self.branch, message=message)

    def push(self) -> None:
        path = self._require(CopyState.COMMITTED)
        remote = self._git(["config", "--get", "remote.origin.url"], cwd=path)
        if remote.returncode != 0 or not (remote.stdout or "").strip():
            raise PushError("Could not read remote.origin.url", self._output(remote))

        url = _embed_token(remote.stdout, self.token)
        proc = self._git(["push", url, str(self.branch)], cwd=path)
        if proc.returncode != 0:
            output = self._output(proc)
            log_error("Failed to push branch", branch=self.branch, output=output)
            raise PushError(f"Failed to push branch {self.branch}", output)

        self.state = CopyState.PUSHED
        log_info("Pushed branch", branch=self.branch)

    def cleanup(self) -> bool:
        """Delete the working copy. Never raises; returns whether anything was removed."""
        if self.state is CopyState.CLEANED:
            return False
        self.state = CopyState.CLEANED
        if self.path is None or not self.path.exists():
            log_info("No working copy to clean up")
            return False
        try:
            remove_tree(self.path, windows=self.windows)
        except OSError as e:
            log_error("Failed to clean up working copy", path=str(self.path), error=str(e))
            return False
        log_info("Cleaned up working copy", path=str(self.path))
        return True

    @contextmanager
    def session(self, owner: str, repo: str) -> Iterator[Path]:
        """Clone on entry; the working copy is removed on every exit path."""
        try:
            yield self.clone(owner, repo)
        finally:
            self.cleanup()
