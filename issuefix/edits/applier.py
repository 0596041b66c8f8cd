"""Apply a validated change response to files in a working copy."""

from __future__ import annotations

import os
import stat
import tempfile
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Dict, List, Optional, Sequence

from issuefix.edits.line_edits import EditKind, apply_edits, render_lines, split_lines
from issuefix.errors import MissingFileError, PatchError, UnsafePathError
from issuefix.models import FileChangeSet, FileEdit
from issuefix.utils.audit import AuditTrail
from issuefix.utils.logger import log_info


@dataclass
class _FilePlan:
    rel_path: str
    path: Path
    edits: List[FileEdit] = field(default_factory=list)
    exists: bool = True
    new_text: str = ""


def _atomic_write(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(text)
        os.chmod(tmp_name, stat.S_IMODE(path.stat().st_mode) if path.exists() else 0o644)
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


class PatchApplier:
    """Mutates files in ``root`` according to model change-sets.

    Application is two-phase: every change-set is resolved, read and run
    through the line edit engine before the first byte is written, so a bad
    edit anywhere leaves the working copy untouched.
    """

    def __init__(self, root: Path, audit: Optional[AuditTrail] = None) -> None:
        self.root = Path(root).resolve()
        self.audit = audit
        self.touched: List[str] = []

    def _resolve(self, raw: str) -> tuple[str, Path]:
        rel = PurePosixPath(raw.replace("\\", "/").lstrip("/"))
        if not rel.parts or ".." in rel.parts:
            raise UnsafePathError(f"Refusing to patch path outside the working copy: {raw!r}")
        path = (self.root / Path(*rel.parts)).resolve()
        if path != self.root and self.root not in path.parents:
            raise UnsafePathError(f"Refusing to patch path outside the working copy: {raw!r}")
        if path.is_dir():
            raise MissingFileError(f"Target is a directory, not a file: {rel}")
        return str(rel), path

    def _plan(self, change_sets: Sequence[FileChangeSet]) -> List[_FilePlan]:
        plans: Dict[str, _FilePlan] = {}
        for change_set in change_sets:
            rel, path = self._resolve(change_set.file)
            plan = plans.get(rel)
            if plan is None:
                plan = plans[rel] = _FilePlan(rel_path=rel, path=path, exists=path.is_file())
                if not plan.exists and (
                    not change_set.changes or change_set.changes[0].type != EditKind.INSERT.value
                ):
                    raise MissingFileError(f"File not found in working copy: {rel}")
            plan.edits.extend(change_set.changes)

        for plan in plans.values():
            original = ""
            if plan.exists:
                try:
                    with plan.path.open("r", encoding="utf-8", newline="") as f:
                        original = f.read()
                except UnicodeDecodeError as e:
                    raise PatchError(f"Cannot patch non UTF-8 file {plan.rel_path}: {e}") from e
            plan.new_text = render_lines(apply_edits(split_lines(original), plan.edits))
        return list(plans.values())

    def apply(self, change_sets: Sequence[FileChangeSet]) -> List[str]:
        """Apply all change-sets and return the relative paths written."""
        plans = self._plan(change_sets)
        written: List[str] = []
        for plan in plans:
            _atomic_write(plan.path, plan.new_text)
            written.append(plan.rel_path)
            self.touched.append(plan.rel_path)
            log_info("Applied changes to file", file=plan.rel_path, edits=len(plan.edits), created=not plan.exists)
            if self.audit is not None:
                self.audit.append({
                    "status": "file_patched",
                    "file": plan.rel_path,
                    "edits": len(plan.edits),
                    "created": not plan.exists,
                })
        return written
