"""Data model shared by the pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from issuefix.errors import InvalidPayloadError

CONTENT_KINDS = ("replace", "insert")


@dataclass(frozen=True)
class IssueEvent:
    """Issue notification extracted from a verified webhook payload."""

    owner: str
    repo: str
    number: int
    title: str
    body: str = ""

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> IssueEvent:
        if not isinstance(payload, dict):
            raise InvalidPayloadError("Payload is not a JSON object")
        try:
            repository = payload["repository"]
            issue = payload["issue"]
            return cls(
                owner=str(repository["owner"]["login"]),
                repo=str(repository["name"]),
                number=int(issue["number"]),
                title=str(issue.get("title") or ""),
                body=str(issue.get("body") or ""),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidPayloadError(f"Not an issue event: missing or invalid {e}") from e

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"


@dataclass(frozen=True)
class WorkingCopy:
    root: Path
    branch: str
    run_id: str


@dataclass
class CodeContext:
    """Source snapshot handed to the model."""

    files: List[Tuple[str, str]] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    @property
    def file_count(self) -> int:
        return len(self.files)

    def render(self) -> str:
        return "".join(f"FILE: {path}\n\n{content}\n\n\n" for path, content in self.files)


class FileEdit(BaseModel):
    """One line-range edit as described by the model.

    ``type`` stays a raw string here; the line edit engine decides whether it
    is a kind it knows, so an unknown kind rejects the whole file batch there.
    """

    model_config = ConfigDict(extra="ignore")

    type: str
    start_line: int
    end_line: Optional[int] = None
    content: Optional[str] = None

    @field_validator("type")
    @classmethod
    def normalize_type(cls, v: str) -> str:
        return v.strip().lower()

    @model_validator(mode="after")
    def require_content(self) -> FileEdit:
        if self.type in CONTENT_KINDS and self.content is None:
            raise ValueError(f"'{self.type}' edit at line {self.start_line} requires content")
        return self

    @property
    def last_line(self) -> int:
        return self.start_line if self.end_line is None else self.end_line


class FileChangeSet(BaseModel):
    model_config = ConfigDict(extra="ignore")

    file: str = Field(min_length=1)
    changes: List[FileEdit] = Field(default_factory=list)


class ChangeResponse(BaseModel):
    """Validated model output: the only thing patch application consumes."""

    model_config = ConfigDict(extra="ignore")

    changes: List[FileChangeSet] = Field(default_factory=list)
    commit_message: str = Field(min_length=1)
    pr_description: str = ""


@dataclass
class PipelineResult:
    issue: IssueEvent
    pr_number: Optional[int] = None
    touched_files: List[str] = field(default_factory=list)
    error: Optional[Exception] = None
    failed_stage: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.pr_number is not None
