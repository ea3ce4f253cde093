# storage/local.py
import logging
import os
import posixpath
import shutil
import stat
import threading
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeoutError
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, List, Optional, Set, Tuple
from urllib.parse import quote

from ..exceptions import (
    InvalidPathError,
    ItemNotFoundError,
    OperationFailedError,
    PathNotADirectoryError,
    StorageError,
    WriteTimeoutError,
)
from ..mime import mime_type_for
from ..paths import (
    join_path,
    normalize_path,
    parent_path,
    resolve_absolute_path,
    validate_name,
)
from .base import StorageClient
from .dto import DirectoryListing, Entry, OperationResult

STREAM_WRITE_THRESHOLD = 5 * 1024 * 1024  # 5 MB
STREAM_WRITE_TIMEOUT_SECONDS = 30.0
STREAM_CHUNK_SIZE = 1024 * 1024

# Same unreserved set as JavaScript's encodeURIComponent
_URL_SAFE = "!*'()"


class LocalStorageClient(StorageClient):
    """
    Storage backed by a directory on the local filesystem, implementing the StorageClient interface.

    Every path goes through `normalize_path` before it is joined with the root.
    Mutations never raise: failures come back as an OperationResult whose
    `error` holds the failure code. Reads raise StorageError subclasses.
    """

    def __init__(
        self,
        root_dir,
        file_url_prefix: str = "/api/file/",
        stream_threshold: int = STREAM_WRITE_THRESHOLD,
        stream_timeout: float = STREAM_WRITE_TIMEOUT_SECONDS,
        chunk_size: int = STREAM_CHUNK_SIZE,
    ):
        self.root_dir = Path(os.path.abspath(root_dir))
        self.file_url_prefix = file_url_prefix
        self.stream_threshold = stream_threshold
        self.stream_timeout = stream_timeout
        self.chunk_size = chunk_size
        logging.info(f"Local storage client initialized with root '{self.root_dir}'.")

    @classmethod
    def from_settings(cls, settings, root_dir=None) -> "LocalStorageClient":
        return cls(
            root_dir=root_dir or settings.DATA_DIR,
            file_url_prefix=settings.FILE_URL_PREFIX,
            stream_threshold=settings.STREAM_WRITE_THRESHOLD,
            stream_timeout=settings.STREAM_WRITE_TIMEOUT_SECONDS,
            chunk_size=settings.STREAM_CHUNK_SIZE,
        )

    # --- helpers ---

    def ensure_root_exists(self):
        """Creates the storage root if it is missing."""
        try:
            self.root_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logging.error(f"Error creating data directory '{self.root_dir}': {e}")
            raise OperationFailedError("Failed to create data directory") from e

    def _absolute(self, relative_path: str) -> Path:
        return resolve_absolute_path(self.root_dir, relative_path)

    def file_url(self, relative_path: str) -> str:
        return f"{self.file_url_prefix}{quote(relative_path, safe=_URL_SAFE)}"

    def _stat_entry(self, relative_path: str, name: str) -> Tuple[Entry, os.stat_result]:
        st = os.stat(self._absolute(relative_path))
        is_dir = stat.S_ISDIR(st.st_mode)
        entry = Entry(
            name=name,
            path=relative_path,
            type="folder" if is_dir else mime_type_for(name),
            is_directory=is_dir,
            size=0 if is_dir else st.st_size,
            modified_at=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
            url=None if is_dir else self.file_url(relative_path),
        )
        return entry, st

    def _open_directory(self, normalized: str) -> Optional[List[str]]:
        """
        Returns the child names of a directory, or None if it does not exist.
        """
        absolute = self._absolute(normalized)
        try:
            st = os.stat(absolute)
        except (FileNotFoundError, NotADirectoryError):
            return None
        except OSError as e:
            logging.error(f"Error checking directory '{absolute}': {e}")
            raise OperationFailedError("Failed to list directory") from e

        if not stat.S_ISDIR(st.st_mode):
            logging.info(f"Path is not a directory: '{absolute}'")
            raise PathNotADirectoryError("Path is not a directory")

        try:
            return os.listdir(absolute)
        except OSError as e:
            logging.error(f"Error reading directory '{absolute}': {e}")
            raise OperationFailedError("Failed to list directory") from e

    def _ensure_directory(self, absolute: Path) -> List[Path]:
        """
        Creates `absolute` and any missing parents.

        :return: The directories that were created, deepest first.
        """
        missing = []
        current = absolute
        while not os.path.lexists(current) and current != current.parent:
            missing.append(current)
            current = current.parent
        try:
            absolute.mkdir(parents=True, exist_ok=True)
        except (FileExistsError, NotADirectoryError) as e:
            raise PathNotADirectoryError("Destination is not a directory") from e
        return missing

    @staticmethod
    def _remove_created_directories(created: List[Path]):
        for directory in created:
            try:
                directory.rmdir()
            except OSError as e:
                logging.warning(f"Could not remove directory '{directory}': {e}")
                break

    @staticmethod
    def _remove_partial(absolute: Path):
        try:
            absolute.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logging.error(f"Could not remove partially written file '{absolute}': {e}")

    @staticmethod
    def _failure(action: str, error: Exception) -> OperationResult:
        if isinstance(error, StorageError):
            logging.warning(f"{action} rejected: {error}")
            return OperationResult.fail(str(error), error=error.code)
        if isinstance(error, FileExistsError):
            return OperationResult.fail(
                "An item with this name already exists", error="AlreadyExists"
            )
        logging.error(f"{action} failed: {error}", exc_info=True)
        return OperationResult.fail(f"Failed to {action.lower()}")

    # --- listing ---

    def list_directory(self, path: str) -> DirectoryListing:
        """
        Lists the immediate children of a directory.
        A missing directory is reported as an empty listing, not an error.
        Children that cannot be stat'ed are left out.
        """
        normalized = normalize_path(path)
        self.ensure_root_exists()
        logging.info(f"Listing directory '{normalized}'")

        names = self._open_directory(normalized)
        if names is None:
            logging.info(f"Directory does not exist: '{normalized}'")
            return DirectoryListing(path=normalized, items=[], parent=parent_path(normalized))

        items = []
        for name in names:
            child = join_path(normalized, name)
            try:
                entry, _ = self._stat_entry(child, name)
            except (OSError, StorageError) as e:
                logging.warning(f"Error getting stats for '{child}': {e}")
                continue
            items.append(entry)

        logging.info(f"Found {len(items)} of {len(names)} items in '{normalized}'")
        return DirectoryListing(path=normalized, items=items, parent=parent_path(normalized))

    def list_directory_recursive(self, path: str) -> DirectoryListing:
        """
        Lists every entry below a directory, depth-first: each folder is
        followed by its own descendants before its next sibling.
        """
        normalized = normalize_path(path)
        self.ensure_root_exists()

        names = self._open_directory(normalized)
        items: List[Entry] = []
        if names is not None:
            visited = {self._directory_key(self._absolute(normalized))}
            self._walk(normalized, names, items, visited)
        return DirectoryListing(path=normalized, items=items, parent=parent_path(normalized))

    @staticmethod
    def _directory_key(absolute: Path) -> Tuple[int, int]:
        st = os.stat(absolute)
        return st.st_dev, st.st_ino

    def _walk(self, normalized: str, names: List[str], items: List[Entry], visited: Set[Tuple[int, int]]):
        # Stack of (directory, remaining children); depth is not bounded by the recursion limit
        stack: List[Tuple[str, Iterator[str]]] = [(normalized, iter(names))]
        while stack:
            directory, remaining = stack[-1]
            name = next(remaining, None)
            if name is None:
                stack.pop()
                continue

            child = join_path(directory, name)
            try:
                entry, st = self._stat_entry(child, name)
            except (OSError, StorageError) as e:
                logging.warning(f"Error getting stats for '{child}': {e}")
                continue
            items.append(entry)

            if not entry.is_directory:
                continue
            # Symlinked directories can form cycles
            key = (st.st_dev, st.st_ino)
            if key in visited:
                logging.warning(f"Skipping already visited directory '{child}'")
                continue
            visited.add(key)
            try:
                child_names = os.listdir(self._absolute(child))
            except OSError as e:
                logging.warning(f"Error reading directory '{child}': {e}")
                continue
            stack.append((child, iter(child_names)))

    # --- mutations ---

    def create_folder(self, parent_path: str, name: str) -> OperationResult:
        """Creates `name` inside `parent_path`, creating missing parents too."""
        try:
            validate_name(name)
            folder_path = join_path(normalize_path(parent_path), name)
            absolute = self._absolute(folder_path)

            if os.path.lexists(absolute):
                logging.info(f"Folder '{folder_path}' already exists.")
                return OperationResult.fail(
                    "A folder with this name already exists", error="AlreadyExists"
                )

            self._ensure_directory(absolute.parent)
            # Not recursive: loses with FileExistsError if a concurrent request created it first
            absolute.mkdir()
            logging.info(f"Created folder '{folder_path}'.")
            return OperationResult.ok("Folder created successfully", path=folder_path)
        except (StorageError, OSError) as e:
            return self._failure("Create folder", e)

    def rename_item(self, path: str, new_name: str) -> OperationResult:
        try:
            validate_name(new_name)
            normalized = normalize_path(path)
            if normalized == "":
                raise InvalidPathError("The storage root cannot be renamed")

            absolute = self._absolute(normalized)
            if not os.path.lexists(absolute):
                return OperationResult.fail("Item not found", error="NotFound")

            new_path = join_path(posixpath.dirname(normalized), new_name)
            absolute_new = self._absolute(new_path)
            if os.path.lexists(absolute_new):
                return OperationResult.fail(
                    "An item with this name already exists", error="AlreadyExists"
                )

            logging.info(f"Renaming '{normalized}' to '{new_path}'...")
            os.rename(absolute, absolute_new)
            return OperationResult.ok("Item renamed successfully", newPath=new_path)
        except (StorageError, OSError) as e:
            return self._failure("Rename item", e)

    def delete_item(self, path: str) -> OperationResult:
        """Deletes a file, or a folder together with all of its contents."""
        try:
            normalized = normalize_path(path)
            if normalized == "":
                raise InvalidPathError("The storage root cannot be deleted")

            absolute = self._absolute(normalized)
            try:
                st = os.lstat(absolute)
            except FileNotFoundError:
                return OperationResult.fail("Item not found", error="NotFound")

            logging.info(f"Deleting '{normalized}'...")
            if stat.S_ISDIR(st.st_mode):
                shutil.rmtree(absolute)
            else:
                os.unlink(absolute)
            return OperationResult.ok("Item deleted successfully")
        except (StorageError, OSError) as e:
            return self._failure("Delete item", e)

    def move_item(self, source_path: str, target_dir_path: str) -> OperationResult:
        try:
            normalized_source = normalize_path(source_path)
            normalized_target = normalize_path(target_dir_path)
            if normalized_source == "":
                raise InvalidPathError("The storage root cannot be moved")

            absolute_source = self._absolute(normalized_source)
            if not os.path.lexists(absolute_source):
                return OperationResult.fail("Item not found", error="NotFound")

            absolute_target = self._absolute(normalized_target)
            if not os.path.exists(absolute_target):
                return OperationResult.fail("Target folder not found", error="NotFound")
            if not os.path.isdir(absolute_target):
                raise PathNotADirectoryError("Target is not a folder")

            if normalized_target == normalized_source or normalized_target.startswith(
                normalized_source + "/"
            ):
                raise InvalidPathError("A folder cannot be moved into itself")

            new_path = join_path(normalized_target, posixpath.basename(normalized_source))
            absolute_new = self._absolute(new_path)
            if os.path.lexists(absolute_new):
                return OperationResult.fail(
                    "An item with this name already exists in the target folder",
                    error="AlreadyExists",
                )

            logging.info(f"Moving '{normalized_source}' to '{new_path}'...")
            os.rename(absolute_source, absolute_new)
            return OperationResult.ok("Item moved successfully", newPath=new_path)
        except (StorageError, OSError) as e:
            return self._failure("Move item", e)

    def save_file(self, dir_path: str, file_name: str, content: bytes) -> OperationResult:
        """
        Writes a new file. Payloads above `stream_threshold` are written in
        chunks on a worker thread and abandoned after `stream_timeout` seconds.
        """
        try:
            validate_name(file_name)
            file_path = join_path(normalize_path(dir_path), file_name)
            absolute = self._absolute(file_path)

            if os.path.lexists(absolute):
                return OperationResult.fail(
                    "A file with this name already exists", error="AlreadyExists"
                )
            created = self._ensure_directory(absolute.parent)

            logging.info(f"Saving file to '{absolute}' ({len(content)} bytes)")
            try:
                if len(content) > self.stream_threshold:
                    self._write_streamed(absolute, content)
                else:
                    self._write_buffered(absolute, content)
            except BaseException:
                # A failed upload leaves no empty folders behind
                self._remove_created_directories(created)
                raise
            logging.info(f"Saved '{file_path}'.")
            return OperationResult.ok("File saved successfully", path=file_path)
        except WriteTimeoutError:
            return OperationResult.fail("File upload timed out", error="Timeout")
        except (StorageError, OSError) as e:
            return self._failure("Save file", e)

    def _write_buffered(self, absolute: Path, content: bytes):
        handle = open(absolute, "xb")
        try:
            with handle:
                handle.write(content)
        except BaseException:
            self._remove_partial(absolute)
            raise

    def _write_chunks(self, handle, content: bytes, stop: threading.Event) -> bool:
        view = memoryview(content)
        offset = 0
        while offset < len(view):
            if stop.is_set():
                return False
            handle.write(view[offset:offset + self.chunk_size])
            offset += self.chunk_size
        handle.flush()
        return True

    def _write_streamed(self, absolute: Path, content: bytes):
        handle = open(absolute, "xb")
        stop = threading.Event()

        def pump():
            with handle:
                return self._write_chunks(handle, content, stop)

        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="imgshelf-write")
        try:
            future = executor.submit(pump)
            future.result(timeout=self.stream_timeout)
            logging.info(f"File saved via chunked write: '{absolute}'")
        except FuturesTimeoutError:
            stop.set()
            logging.error(
                f"File write operation timed out after {self.stream_timeout} seconds: '{absolute}'"
            )
            self._remove_partial(absolute)
            raise WriteTimeoutError("File upload timed out") from None
        except BaseException:
            self._remove_partial(absolute)
            raise
        finally:
            executor.shutdown(wait=False)

    # --- reads ---

    def get_file_content(self, path: str) -> bytes:
        normalized = normalize_path(path)
        absolute = self._absolute(normalized)
        try:
            with open(absolute, "rb") as f:
                return f.read()
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError) as e:
            raise ItemNotFoundError("File not found") from e
        except OSError as e:
            logging.error(f"Error reading file '{absolute}': {e}")
            raise OperationFailedError("Failed to read file") from e

    def exists(self, path: str) -> bool:
        try:
            return os.path.lexists(self._absolute(normalize_path(path)))
        except InvalidPathError:
            return False
