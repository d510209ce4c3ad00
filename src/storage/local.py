# src/storage/local.py - v1
"""Local filesystem bridge: snapshot a checkout as ProjectFiles.

File ids are POSIX paths relative to the project root, so the deletion
callback can map ids back to files without any index.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Awaitable, Callable

from filerecon.core.models import ProjectFile

logger = logging.getLogger(__name__)

IGNORED_DIRS = frozenset({".git", "node_modules", "__pycache__", ".venv", "dist", "build"})

EXTENSION_LANGUAGES: dict[str, str] = {
    ".ts": "typescript",
    ".tsx": "typescript",
    ".js": "javascript",
    ".jsx": "javascript",
    ".css": "css",
    ".scss": "scss",
    ".sass": "sass",
    ".less": "less",
    ".html": "html",
    ".htm": "html",
    ".json": "json",
    ".md": "markdown",
    ".py": "python",
}


def language_for(path: Path) -> str:
    return EXTENSION_LANGUAGES.get(path.suffix.lower(), path.suffix.lower().lstrip("."))


def load_project_files(root: Path, recursive: bool = True) -> list[ProjectFile]:
    """Read every UTF-8 text file under ``root`` into a ProjectFile.

    Raises:
        ValueError: ``root`` is not a directory.
    """
    if not root.is_dir():
        msg = f"Project root is not a directory: {root}"
        raise ValueError(msg)

    files: list[ProjectFile] = []
    pattern_fn = root.rglob if recursive else root.glob
    for path in sorted(pattern_fn("*")):
        relative = path.relative_to(root)
        if any(part in IGNORED_DIRS for part in relative.parts):
            continue
        if not path.is_file():
            continue
        try:
            content = path.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            logger.debug("Skipping non-text file %s", relative)
            continue

        file_id = relative.as_posix()
        files.append(ProjectFile(
            id=file_id,
            name=path.name,
            path=f"/{file_id}",
            content=content,
            language=language_for(path),
        ))

    logger.info("Loaded %d files from %s", len(files), root)
    return files


def delete_local_files(root: Path) -> Callable[[list[str]], Awaitable[None]]:
    """Build a deletion callback for ids produced by load_project_files()."""
    resolved_root = root.resolve()

    async def delete(file_ids: list[str]) -> None:
        for file_id in file_ids:
            target = (resolved_root / file_id).resolve()
            if not target.is_relative_to(resolved_root):
                msg = f"Refusing to delete outside project root: {file_id}"
                raise ValueError(msg)
            target.unlink(missing_ok=True)
            logger.info("Deleted %s", file_id)

    return delete
