# storage/base.py
from abc import ABC, abstractmethod
from .dto import DirectoryListing, OperationResult


class StorageClient(ABC):
    """
    Abstract base class for a storage backend.
    Defines the common interface the boundary actions call into. All paths
    are relative to the backend's root and go through `normalize_path`.
    """

    @abstractmethod
    def list_directory(self, path: str) -> DirectoryListing:
        """
        Lists the immediate children of a directory.

        :param path: Root-relative path of the directory.
        :return: The listing; empty if the directory does not exist.
        """
        pass

    @abstractmethod
    def list_directory_recursive(self, path: str) -> DirectoryListing:
        """
        Lists a whole subtree, flattened in depth-first order.

        :param path: Root-relative path of the directory.
        """
        pass

    @abstractmethod
    def create_folder(self, parent_path: str, name: str) -> OperationResult:
        """
        Creates a folder named `name` inside `parent_path`.
        """
        pass

    @abstractmethod
    def rename_item(self, path: str, new_name: str) -> OperationResult:
        """
        Renames a file or folder in place.

        :param path: Root-relative path of the item.
        :param new_name: New leaf name, without separators.
        """
        pass

    @abstractmethod
    def delete_item(self, path: str) -> OperationResult:
        """
        Deletes a file, or a folder with everything inside it.
        """
        pass

    @abstractmethod
    def move_item(self, source_path: str, target_dir_path: str) -> OperationResult:
        """
        Moves a file or folder into another folder, keeping its name.

        :param source_path: Root-relative path of the item to move.
        :param target_dir_path: Root-relative path of the destination folder.
        """
        pass

    @abstractmethod
    def save_file(self, dir_path: str, file_name: str, content: bytes) -> OperationResult:
        """
        Stores new file content. Never overwrites an existing file.

        :param dir_path: Destination folder, created if missing.
        :param file_name: Name of the new file.
        :param content: File bytes.
        """
        pass

    @abstractmethod
    def get_file_content(self, path: str) -> bytes:
        """
        Reads the full content of a file.
        Raises ItemNotFoundError if there is no file at `path`.
        """
        pass

    @abstractmethod
    def exists(self, path: str) -> bool:
        pass
