# storage/dto.py
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    # Dumped with camelCase keys for the browser, populated by field name in Python
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Entry(_CamelModel):
    """
    One file or folder inside the storage root, as exposed by a listing.
    """

    name: str
    path: str
    type: str
    is_directory: bool
    size: int = 0
    modified_at: datetime
    url: Optional[str] = None

    @model_validator(mode="after")
    def check_folder_shape(self):
        if self.is_directory:
            if self.url is not None:
                raise ValueError("Folders do not have a url")
            if self.type != "folder":
                raise ValueError("Folders must have type 'folder'")
            if self.size != 0:
                raise ValueError("Folders report a size of 0")
        elif self.url is None:
            raise ValueError("Files must have a url")
        return self


class DirectoryListing(_CamelModel):
    """Contents of one directory, in the order the filesystem returned them."""

    path: str
    items: List[Entry] = Field(default_factory=list)
    parent: Optional[str] = None


class OperationResult(_CamelModel):
    """
    Outcome of a mutation. `error` carries the failure code (e.g. "AlreadyExists").
    """

    success: bool
    message: str
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, message: str, **data) -> "OperationResult":
        return cls(success=True, message=message, data=data or None)

    @classmethod
    def fail(
        cls, message: str, error: str = "OperationFailed", data: Optional[Dict[str, Any]] = None
    ) -> "OperationResult":
        return cls(success=False, message=message, error=error, data=data)


class UploadedFile(BaseModel):
    """A single file received from an upload form."""

    filename: str
    content: bytes
    content_type: str = ""

    @property
    def size(self) -> int:
        return len(self.content)


class FileContent(BaseModel):
    """Raw file bytes plus the response headers used to serve them."""

    filename: str
    content: bytes
    content_type: str
    headers: Dict[str, str] = Field(default_factory=dict)
