"""Build the source snapshot sent to the model."""

from __future__ import annotations

import os
from pathlib import Path
from typing import FrozenSet, Optional, Union

from issuefix.models import CodeContext
from issuefix.utils.logger import log_error, log_info, log_warning

CODE_EXTENSIONS: FrozenSet[str] = frozenset({
    "php", "js", "ts", "jsx", "tsx", "vue", "css", "scss", "html", "py", "java",
    "c", "cpp", "h", "hpp", "cs", "go", "rb", "swift", "kt", "rs",
})

EXCLUDED_DIRS: FrozenSet[str] = frozenset({
    "vendor", "node_modules", ".git", "storage", "logs", "tests", "dist", "build",
    "coverage", "cache", "tmp", "temp",
})

MAX_FILE_BYTES = 5 * 1024 * 1024


class CodebaseContextBuilder:
    """Walks a working copy and collects source files for the prompt.

    Exclusions apply to the first path component relative to the root
    (``tests/`` at the top level is skipped, ``src/tests/`` is not).
    Unreadable files are logged and skipped; they never fail the run.
    """

    def __init__(
        self,
        extensions: Optional[FrozenSet[str]] = None,
        excluded_dirs: Optional[FrozenSet[str]] = None,
        max_file_bytes: int = MAX_FILE_BYTES,
    ) -> None:
        self.extensions = extensions if extensions is not None else CODE_EXTENSIONS
        self.excluded_dirs = excluded_dirs if excluded_dirs is not None else EXCLUDED_DIRS
        self.max_file_bytes = max_file_bytes

    def _wanted(self, name: str) -> bool:
        return Path(name).suffix.lower().lstrip(".") in self.extensions

    def build(self, root: Union[str, Path]) -> CodeContext:
        root = Path(root)
        context = CodeContext()

        for dirpath, dirnames, filenames in os.walk(root):
            if Path(dirpath) == root:
                dirnames[:] = [d for d in dirnames if d not in self.excluded_dirs]

            for name in filenames:
                if not self._wanted(name):
                    continue
                path = Path(dirpath) / name
                rel = path.relative_to(root).as_posix()

                try:
                    size = path.stat().st_size
                except OSError as e:
                    log_error("Failed to stat file", file=rel, error=str(e))
                    context.skipped.append(rel)
                    continue
                if size > self.max_file_bytes:
                    log_warning("Skipping large file", file=rel, size=size)
                    context.skipped.append(rel)
                    continue

                try:
                    content = path.read_text(encoding="utf-8")
                except (OSError, UnicodeDecodeError) as e:
                    log_error("Failed to read file", file=rel, error=str(e))
                    context.skipped.append(rel)
                    continue

                context.files.append((rel, content))

        log_info("Built code context", files=context.file_count, skipped=len(context.skipped))
        return context
