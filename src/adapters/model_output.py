# src/adapters/model_output.py - v1
"""Input adapter: turn code-generation output into CandidateFile values.

Two shapes are accepted:
  - structured: a JSON object ``{"files": [{path, language, content, operation?}]}``
  - free-form: markdown with fenced code blocks, optionally announcing their
    target with ``/* UPDATE: path */``, ``<!-- CREATE: path -->``,
    ``// UPDATE: path`` or a first-line ``filename: path`` marker.

Marker sniffing lives here only; the reconciliation core receives
structured candidates.
"""

from __future__ import annotations

import json
import logging
import re
from typing import TYPE_CHECKING, Any, Mapping

from filerecon.core import paths
from filerecon.core.models import CandidateFile, OperationType, ProjectFile

if TYPE_CHECKING:
    from filerecon.config.settings import Settings
    from filerecon.matching.matcher import FileMatcher

logger = logging.getLogger(__name__)

MIN_FILE_LENGTH = 50

_CODE_BLOCK_RE = re.compile(
    r"```(\w+)?\s*"
    r"(?:\n/\*\s*(UPDATE|CREATE):\s*([^*]+)\s*\*/"
    r"|\n<!--\s*(UPDATE|CREATE):\s*([^-]+?)\s*-->"
    r"|\n//\s*(UPDATE|CREATE):\s*([^\n]+))?"
    r"\n([\s\S]*?)```"
)

_FIRST_LINE_RE = re.compile(
    r"^(?:/\*\s*(?:filename|UPDATE|CREATE):\s*([^*]+)\s*\*/"
    r"|<!--\s*(?:filename|UPDATE|CREATE):\s*([^-]+?)\s*-->"
    r"|//\s*(?:filename|UPDATE|CREATE):\s*([^\n]+)"
    r"|(?:FILE:|filename:|File:|FILENAME:)\s*([^\n]+))\n([\s\S]*)"
)

_DECLARED_NAME_RE = re.compile(
    r"(?:export\s+default\s+)?(?:function|class|const)\s+(\w+)", re.IGNORECASE,
)

_FILE_INDICATORS = (
    "<!DOCTYPE", "<html", "export", "import", "function", "class", "const",
    ":root", "body {", "* {",
)

_LANGUAGE_EXTENSIONS = {
    "html": "html",
    "css": "css",
    "javascript": "js",
    "js": "js",
    "typescript": "tsx",
    "tsx": "tsx",
    "json": "json",
}


def canonical_language(language: str | None) -> str:
    if not language:
        return "plaintext"
    language = language.strip().lower()
    return "typescript" if language == "tsx" else language


def extension_for_language(language: str) -> str:
    return _LANGUAGE_EXTENSIONS.get(language, "txt")


def looks_like_complete_file(content: str) -> bool:
    """Heuristic: long enough and contains a typical top-level construct."""
    if len(content) < MIN_FILE_LENGTH:
        return False
    return any(marker in content for marker in _FILE_INDICATORS)


def generate_file_name(language: str, content: str, index: int) -> str:
    """Invent a plausible relative path for an unnamed code block."""
    declared = _DECLARED_NAME_RE.search(content)
    if declared and language in ("typescript", "tsx"):
        name = declared.group(1)
        if "return (" in content and "<" in content:
            return f"components/{name}.tsx"
        if name.startswith("use"):
            return f"hooks/{name}.ts"
        if "interface" in content or "type" in content:
            return f"types/{name}.ts"
        return f"utils/{name}.ts"

    if language in ("typescript", "tsx"):
        if "export default function" in content and "return (" in content:
            return f"components/Component{index}.tsx"
        if "useState" in content or "useEffect" in content:
            return f"hooks/useCustomHook{index}.ts"
        if "interface" in content or "type" in content:
            return "types/index.ts"
        return f"utils/helper{index}.ts"

    if language == "json":
        return "package.json" if index == 1 else f"config-{index}.json"
    if language == "javascript":
        for tool in ("tailwind", "postcss", "vite"):
            if tool in content:
                return f"{tool}.config.js"
        return f"config-{index}.js"
    return f"{language}-file-{index}.{extension_for_language(language)}"


def _candidate(
    path: str, content: str, language: str, operation: OperationType | None,
) -> CandidateFile:
    normalized = paths.normalize(path, preserve_case=True)
    return CandidateFile(
        path=normalized,
        name=paths.get_file_name(normalized, preserve_case=True),
        content=content,
        language=canonical_language(language),
        operation=operation,
    )


def parse_code_blocks(text: str) -> list[CandidateFile]:
    """Extract candidates from fenced code blocks.

    Blocks that do not look like complete files are ignored. Unnamed
    complete blocks get a generated path.
    """
    files: list[CandidateFile] = []
    generated = 0

    for match in _CODE_BLOCK_RE.finditer(text):
        language = canonical_language(match.group(1))
        marker = (match.group(2) or match.group(4) or match.group(6) or "").upper()
        file_name = (match.group(3) or match.group(5) or match.group(7) or "").strip()
        body = match.group(8)

        if not file_name:
            first_line = _FIRST_LINE_RE.match(body)
            if first_line:
                file_name = next(g for g in first_line.groups()[:4] if g).strip()
                body = first_line.group(5)
            elif looks_like_complete_file(body):
                generated += 1
                file_name = generate_file_name(language, body, generated)

        if not file_name or not looks_like_complete_file(body):
            logger.debug("Ignoring code block (%s): not a complete file", language)
            continue

        operation: OperationType = "update" if marker == "UPDATE" else "create"
        files.append(_candidate(file_name, body.strip(), language, operation))

    logger.info("Parsed %d files from code blocks", len(files))
    return files


def coerce_structured_file(raw: Mapping[str, Any]) -> CandidateFile | None:
    """Validate one structured file item; malformed items yield None."""
    path = raw.get("path")
    content = raw.get("content")
    if not path or not isinstance(path, str) or not content:
        logger.warning("Invalid file item: missing path or content (path=%r)", path)
        return None

    if isinstance(content, (dict, list)):
        content = json.dumps(content, indent=2)
    elif not isinstance(content, str):
        logger.warning("Invalid content type %s for %s", type(content).__name__, path)
        return None

    operation = raw.get("operation")
    if operation not in ("create", "update"):
        operation = None
    return _candidate(path, content, raw.get("language") or "", operation)


def parse_model_output(text: str) -> list[CandidateFile]:
    """Structured ``{"files": [...]}`` JSON if present, else code blocks."""
    stripped = text.strip()
    if stripped.startswith("{"):
        try:
            payload = json.loads(stripped)
        except json.JSONDecodeError:
            logger.debug("Output is not valid JSON, falling back to code blocks")
        else:
            items = payload.get("files") if isinstance(payload, dict) else None
            if isinstance(items, list):
                candidates = [
                    coerce_structured_file(item) for item in items if isinstance(item, Mapping)
                ]
                return [c for c in candidates if c is not None]
    return parse_code_blocks(text)


def resolve_operations(
    candidates: list[CandidateFile],
    existing_files: list[ProjectFile],
    matcher: FileMatcher,
    settings: Settings | None = None,
) -> list[CandidateFile]:
    """Rewrite candidates to updates when the matcher finds a confident target."""
    threshold = settings.adapter_auto_update_confidence if settings else 0.5
    if not existing_files:
        return [c if c.operation else c.model_copy(update={"operation": "create"}) for c in candidates]

    resolved: list[CandidateFile] = []
    for candidate in candidates:
        analysis = matcher.find_best_match(candidate.path, candidate.language, existing_files)
        if analysis.best_match is not None and analysis.confidence > threshold:
            target = analysis.best_match.existing_file
            logger.info(
                "Auto-update: %s -> %s (confidence %.2f)",
                candidate.path, target.path, analysis.confidence,
            )
            resolved.append(candidate.model_copy(update={
                "operation": "update", "existing_file_id": target.id,
            }))
        else:
            resolved.append(candidate.model_copy(update={"operation": candidate.operation or "create"}))
    return resolved
