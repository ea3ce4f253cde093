# paths.py
import logging
import os
import posixpath
import re
from pathlib import Path
from typing import Optional, Union
from urllib.parse import unquote

from .exceptions import InvalidNameError, InvalidPathError

# Reserved on at least one of the platforms the root may live on
_RESERVED_NAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1F]')


def _has_parent_segment(path: str) -> bool:
    segments = re.split(r"[/\\]", path)
    return ".." in segments


def normalize_path(input_path: Optional[str]) -> str:
    """
    Converts a caller supplied path into a canonical root-relative form.

    Leading slashes are stripped and `.` segments and duplicate separators are
    collapsed. The root itself is represented by an empty string.

    :param input_path: Relative path, possibly empty or starting with "/".
    :return: The normalized path, without leading or trailing slashes.
    :raises InvalidPathError: If the path contains a ".." segment (also when
        URL-encoded) or a NUL byte.
    """
    if not input_path:
        return ""

    if "\x00" in input_path or "\x00" in unquote(input_path):
        raise InvalidPathError("Invalid path")

    # Traversal is checked on both the raw and the decoded form, before and after normalization
    for candidate in (input_path, unquote(input_path)):
        if _has_parent_segment(candidate):
            logging.warning(f"Rejected path traversal attempt: {input_path!r}")
            raise InvalidPathError("Invalid path")

    normalized = posixpath.normpath(input_path.lstrip("/"))
    if normalized in (".", ""):
        return ""

    if _has_parent_segment(normalized):
        raise InvalidPathError("Invalid path")

    return normalized


def resolve_absolute_path(root: Union[str, Path], relative_path: str) -> Path:
    """
    Joins the storage root with a relative path that went through `normalize_path`.
    """
    normalized = normalize_path(relative_path)
    root_path = Path(os.path.abspath(root))
    absolute = Path(os.path.abspath(os.path.join(root_path, normalized)))

    if os.path.commonpath([str(root_path), str(absolute)]) != str(root_path):
        logging.error(f"Path {relative_path!r} resolved outside of the storage root")
        raise InvalidPathError("Invalid path")
    return absolute


def validate_name(name: Optional[str]):
    """Raises InvalidNameError unless `name` is usable as a single path segment."""
    if not name or name in (".", "..") or _RESERVED_NAME_CHARS.search(name):
        raise InvalidNameError("The name contains invalid characters")


def parent_path(normalized_path: str) -> Optional[str]:
    """Parent of a normalized path; None for the root, "" for top-level items."""
    if normalized_path == "":
        return None
    return posixpath.dirname(normalized_path)


def join_path(directory: str, name: str) -> str:
    """Root-relative join that never produces a leading slash."""
    return posixpath.join(directory, name) if directory else name
