# mime.py
import mimetypes
import posixpath
from typing import Iterable

IMAGE_MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".svg": "image/svg+xml",
    ".bmp": "image/bmp",
    ".tif": "image/tiff",
    ".tiff": "image/tiff",
    ".heic": "image/heic",
    ".heif": "image/heif",
}

IMAGE_EXTENSIONS = {
    "jpg", "jpeg", "png", "gif", "webp", "svg", "bmp", "tiff", "tif", "heic", "heif",
}

DEFAULT_MIME_TYPE = "application/octet-stream"


def mime_type_for(file_name: str) -> str:
    """Guesses a MIME type from the file extension."""
    extension = posixpath.splitext(file_name)[1].lower()
    if extension in IMAGE_MIME_TYPES:
        return IMAGE_MIME_TYPES[extension]
    guessed, _ = mimetypes.guess_type(file_name)
    return guessed or DEFAULT_MIME_TYPE


def is_image_by_extension(file_name: str) -> bool:
    extension = posixpath.splitext(file_name)[1].lower().lstrip(".")
    return extension in IMAGE_EXTENSIONS


def is_type_allowed(content_type: str, allowed_types: Iterable[str]) -> bool:
    """
    Checks a declared MIME type against an allow-list.
    Entries like "image/*" match every subtype of their major type.
    """
    if not content_type:
        return False
    content_type = content_type.split(";", 1)[0].strip().lower()
    for allowed in allowed_types:
        allowed = allowed.lower()
        if allowed.endswith("/*"):
            if content_type.startswith(allowed[:-1]):
                return True
        elif allowed == content_type:
            return True
    return False
