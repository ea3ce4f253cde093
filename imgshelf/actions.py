# actions.py
"""
Operations called by the web layer. Each one takes an optional storage
client; by default it works on the local root from the settings.
"""
import logging
import posixpath
from typing import Iterable, List, Optional
from urllib.parse import quote

from .config import get_settings
from .exceptions import ItemNotFoundError, StorageError
from .mime import is_image_by_extension, is_type_allowed, mime_type_for
from .paths import normalize_path, parent_path
from .storage.base import StorageClient
from .storage.dto import DirectoryListing, FileContent, OperationResult, UploadedFile
from .storage.local import LocalStorageClient

CACHE_CONTROL = "public, max-age=31536000"  # one year


def get_storage_client() -> StorageClient:
    return LocalStorageClient.from_settings(get_settings())


def get_directory_contents(
    dir_path: str = "", storage_client: Optional[StorageClient] = None
) -> DirectoryListing:
    """
    Lists the direct contents of a directory. Never raises: on any failure an
    empty listing is returned so a stale link does not break browsing.
    """
    storage_client = storage_client or get_storage_client()
    try:
        contents = storage_client.list_directory(dir_path)
        logging.info(f"Directory '{dir_path}' has {len(contents.items)} items.")
        return contents
    except Exception as e:
        logging.error(f"Error getting directory contents for '{dir_path}': {e}")
        try:
            normalized = normalize_path(dir_path)
            return DirectoryListing(path=normalized, items=[], parent=parent_path(normalized))
        except StorageError:
            # A rejected path is never echoed back
            return DirectoryListing(path="", items=[], parent=None)


def create_folder(
    dir_path: str, folder_name: str, storage_client: Optional[StorageClient] = None
) -> OperationResult:
    storage_client = storage_client or get_storage_client()
    return storage_client.create_folder(dir_path, folder_name)


def rename_item(
    item_path: str, new_name: str, storage_client: Optional[StorageClient] = None
) -> OperationResult:
    storage_client = storage_client or get_storage_client()
    return storage_client.rename_item(item_path, new_name)


def delete_item(item_path: str, storage_client: Optional[StorageClient] = None) -> OperationResult:
    storage_client = storage_client or get_storage_client()
    return storage_client.delete_item(item_path)


def move_item(
    item_path: str, target_path: str, storage_client: Optional[StorageClient] = None
) -> OperationResult:
    storage_client = storage_client or get_storage_client()
    return storage_client.move_item(item_path, target_path)


def _check_upload(
    upload: UploadedFile, allowed_types: Iterable[str], max_file_size: int
) -> Optional[OperationResult]:
    """Returns a failed result if the upload breaks the upload policy."""
    if not is_type_allowed(upload.content_type, allowed_types) and not is_image_by_extension(
        upload.filename
    ):
        logging.info(f"Invalid file type: '{upload.content_type}' for file '{upload.filename}'")
        return OperationResult.fail(
            f'File "{upload.filename}": This file type is not supported', error="InvalidType"
        )

    if upload.size > max_file_size:
        logging.info(
            f"File too large: {upload.size / (1024 * 1024):.2f}MB exceeds limit of "
            f"{max_file_size / (1024 * 1024):.2f}MB"
        )
        return OperationResult.fail(
            f'File "{upload.filename}": The file is too large', error="TooLarge"
        )
    return None


def upload_files(
    dir_path: str,
    files: List[UploadedFile],
    storage_client: Optional[StorageClient] = None,
) -> OperationResult:
    """
    Saves a batch of uploaded files into `dir_path`.

    Files are processed one by one; a rejected or failed file does not stop
    the rest of the batch. `data["results"]` holds one result per file.
    """
    if not files:
        return OperationResult.fail("No files provided")

    settings = get_settings()
    storage_client = storage_client or get_storage_client()
    total_mb = sum(f.size for f in files) / (1024 * 1024)
    logging.info(f"Starting upload of {len(files)} files ({total_mb:.2f}MB) to '{dir_path}'")

    results: List[OperationResult] = []
    for upload in files:
        rejected = _check_upload(upload, settings.ALLOWED_FILE_TYPES, settings.MAX_FILE_SIZE)
        if rejected is not None:
            results.append(rejected)
            continue

        try:
            result = storage_client.save_file(dir_path, upload.filename, upload.content)
        except Exception as e:
            logging.error(f"Error processing file '{upload.filename}': {e}", exc_info=True)
            result = OperationResult.fail(f"Processing error - {e}")

        results.append(
            result.model_copy(update={"message": f'File "{upload.filename}": {result.message}'})
        )

    succeeded = sum(1 for r in results if r.success)
    data = {"results": [r.model_dump(by_alias=True) for r in results]}

    if succeeded == len(results):
        logging.info("All files uploaded successfully")
        return OperationResult(success=True, message="Files uploaded successfully", data=data)
    if succeeded:
        logging.info(f"{succeeded} of {len(results)} files uploaded successfully")
        return OperationResult(
            success=True, message="Some files were uploaded successfully", data=data
        )
    logging.warning("Failed to upload any files")
    return OperationResult.fail("Failed to upload any files", data=data)


def content_disposition(filename: str) -> str:
    """
    Builds an inline Content-Disposition value that stays Latin-1 encodable:
    an ASCII `filename` fallback plus the RFC 5987 `filename*` form.
    """
    ascii_name = filename.encode("ascii", "replace").decode("ascii")
    ascii_name = ascii_name.replace("\\", "\\\\").replace('"', '\\"')
    return f"inline; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(filename, safe='')}"


def get_file(file_path: str, storage_client: Optional[StorageClient] = None) -> FileContent:
    """
    Fetches file bytes together with the headers to serve them with.

    :raises ItemNotFoundError: For missing files and for any path that
        cannot be served (including traversal attempts).
    """
    storage_client = storage_client or get_storage_client()
    try:
        normalized = normalize_path(file_path)
        content = storage_client.get_file_content(normalized)
    except ItemNotFoundError:
        raise
    except StorageError as e:
        logging.error(f"Path normalization or file read error for '{file_path}': {e}")
        raise ItemNotFoundError("File not found") from e

    filename = posixpath.basename(normalized)
    content_type = mime_type_for(filename)
    headers = {
        "Content-Type": content_type,
        "Content-Disposition": content_disposition(filename),
        "Cache-Control": CACHE_CONTROL,
        "Content-Length": str(len(content)),
    }
    return FileContent(
        filename=filename, content=content, content_type=content_type, headers=headers
    )
