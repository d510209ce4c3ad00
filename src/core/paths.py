# src/core/paths.py - v1
"""Path normalization: every comparison in the engine goes through here.

Canonical form is ``/dir/sub/name.Ext``: forward slashes only, no repeated
slashes, exactly one leading slash, no trailing slash (except root ``/``).
Directory and file names are compared case-insensitively; the extension of
the last segment keeps its case because some toolchains give it meaning.
"""

from __future__ import annotations

import re

from filerecon.core.similarity import positional_similarity

ROOT = "/"

_MULTI_SLASH_RE = re.compile(r"/+")
_INVALID_CHARS_RE = re.compile(r'[<>:"|?*\x00-\x1f]')
_LEADING_SLASH_RE = re.compile(r"^/+")
_TRAILING_SLASH_RE = re.compile(r"/+$")

# Segment names that denote a directory even though they carry no extension.
DIRECTORY_NAMES = frozenset({
    "components", "pages", "hooks", "utils", "types",
    "services", "store", "assets", "styles", "public",
    "src", "lib", "api", "data",
})

MAKE_UNIQUE_MAX_ATTEMPTS = 1000


def normalize(path: str | None, preserve_case: bool = False) -> str:
    """Canonicalize a path string.

    Args:
        path: Raw path, possibly with backslashes, repeated or missing slashes.
        preserve_case: Skip case folding when True.

    Returns:
        Canonical path; empty or whitespace-only input yields ``/``.
    """
    if not path:
        return ROOT
    normalized = path.strip()
    if not normalized:
        return ROOT

    normalized = normalized.replace("\\", "/")
    normalized = _MULTI_SLASH_RE.sub("/", normalized)
    if not normalized.startswith("/"):
        normalized = "/" + normalized
    if len(normalized) > 1 and normalized.endswith("/"):
        normalized = normalized[:-1]

    if preserve_case:
        return normalized

    segments = normalized.split("/")
    last = len(segments) - 1
    folded: list[str] = []
    for index, segment in enumerate(segments):
        dot = segment.rfind(".")
        if index == last and dot > 0:
            folded.append(segment[:dot].lower() + segment[dot:])
        else:
            folded.append(segment.lower())
    return "/".join(folded)


def get_segments(path: str | None, preserve_case: bool = False) -> list[str]:
    """Non-empty segments of the normalized path."""
    return [s for s in normalize(path, preserve_case).split("/") if s]


def get_parent_path(path: str | None) -> str:
    normalized = normalize(path)
    last_slash = normalized.rfind("/")
    if last_slash <= 0:
        return ROOT
    return normalized[:last_slash]


def get_file_name(path: str | None, preserve_case: bool = False) -> str:
    """Last segment of the path, or an empty string for root."""
    segments = get_segments(path, preserve_case)
    return segments[-1] if segments else ""


def get_extension(path: str | None, preserve_case: bool = False) -> str:
    """Text after the last dot of the file name (no dot). Dotfiles have none."""
    file_name = get_file_name(path, preserve_case)
    dot = file_name.rfind(".")
    return file_name[dot + 1:] if dot > 0 else ""


def get_base_name(path: str | None, preserve_case: bool = False) -> str:
    """File name without its extension."""
    file_name = get_file_name(path, preserve_case)
    dot = file_name.rfind(".")
    return file_name[:dot] if dot > 0 else file_name


def join(*segments: str, preserve_case: bool = False) -> str:
    """Join segments with ``/`` and normalize the result."""
    return normalize("/".join(s for s in segments if s), preserve_case)


def is_directory_path(path: str | None, has_extension: bool | None = None) -> bool:
    """Guess whether a path names a directory.

    True when the caller says it has no extension, when the last segment is a
    conventional directory name, or when it carries no dot at all.
    """
    if has_extension is False:
        return True
    file_name = get_file_name(path)
    return file_name in DIRECTORY_NAMES or "." not in file_name


def is_ancestor(ancestor_path: str | None, descendant_path: str | None) -> bool:
    ancestor = normalize(ancestor_path)
    descendant = normalize(descendant_path)
    if ancestor == ROOT:
        return descendant != ROOT
    return descendant.startswith(ancestor + "/")


def get_relative_path(base_path: str | None, target_path: str | None) -> str:
    """Path of ``target_path`` relative to ``base_path``.

    Targets outside the base are returned in normalized absolute form.
    """
    base = normalize(base_path)
    target = normalize(target_path)
    if target == base:
        return ""
    if is_ancestor(base, target):
        return target[len(base):].lstrip("/")
    return target


def is_valid(path: object) -> bool:
    """Reject empty values and characters no storage backend accepts."""
    if not path or not isinstance(path, str):
        return False
    return _INVALID_CHARS_RE.search(path) is None


def to_unix_style(path: str | None) -> str:
    if not path:
        return ""
    return path.replace("\\", "/")


def make_unique(path: str, existing_paths: list[str]) -> str:
    """Return ``path`` or a ``name_N.ext`` sibling not present in ``existing_paths``."""
    normalized = normalize(path)
    existing = {normalize(p) for p in existing_paths}
    if normalized not in existing:
        return normalized

    base_name = get_base_name(normalized)
    extension = get_extension(normalized)
    parent = get_parent_path(normalized)

    candidate = normalized
    for counter in range(1, MAKE_UNIQUE_MAX_ATTEMPTS):
        new_name = f"{base_name}_{counter}.{extension}" if extension else f"{base_name}_{counter}"
        candidate = join(parent, new_name)
        if candidate not in existing:
            break
    return candidate


def are_equivalent(
    path1: str | None,
    path2: str | None,
    ignore_case: bool = False,
    ignore_leading_slash: bool = False,
    ignore_trailing_slash: bool = False,
) -> bool:
    """Compare two paths under independent, composable relaxations.

    Comparison only: stored paths are never rewritten by this function.
    """
    if not path1 or not path2:
        return path1 == path2

    p1 = path1.strip()
    p2 = path2.strip()

    if ignore_leading_slash:
        p1 = _LEADING_SLASH_RE.sub("", p1)
        p2 = _LEADING_SLASH_RE.sub("", p2)
    if ignore_trailing_slash:
        p1 = _TRAILING_SLASH_RE.sub("", p1)
        p2 = _TRAILING_SLASH_RE.sub("", p2)
    if ignore_case:
        p1 = p1.lower()
        p2 = p2.lower()

    p1 = _MULTI_SLASH_RE.sub("/", p1.replace("\\", "/"))
    p2 = _MULTI_SLASH_RE.sub("/", p2.replace("\\", "/"))
    return p1 == p2


def calculate_similarity(path1: str | None, path2: str | None) -> float:
    """Segment-wise path similarity in [0, 1].

    Segments are compared from the end (file name first). The run stops at
    the first differing segment; only the file name earns partial credit.
    """
    if not path1 or not path2:
        return 0.0
    if path1 == path2:
        return 1.0

    norm1 = normalize(path1)
    norm2 = normalize(path2)
    if norm1 == norm2:
        return 1.0

    segments1 = get_segments(norm1)
    segments2 = get_segments(norm2)
    max_segments = max(len(segments1), len(segments2))
    min_segments = min(len(segments1), len(segments2))
    if max_segments == 0:
        return 1.0

    matched = 0.0
    for i in range(min_segments):
        seg1 = segments1[-1 - i]
        seg2 = segments2[-1 - i]
        if seg1 == seg2:
            matched += 1
            continue
        if i == 0:
            matched += positional_similarity(seg1, seg2)
        break

    return matched / max_segments
