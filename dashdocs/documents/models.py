"""
DashDocs Document Models — Pydantic value snapshots and request types.

Repositories return these immutable snapshots instead of live ORM rows, so
the access resolver and query engine work on plain values.
"""

from __future__ import annotations

import json
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, BinaryIO, Dict, FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ScanStatus(str, Enum):
    """
    Malware scan sub-state of a document.

    State flow:
    PENDING → CLEAN or REJECTED (written back by the scanning worker)
    any → PENDING on replace
    """
    PENDING = "Pending"
    CLEAN = "Clean"
    REJECTED = "Rejected"


class ActivityType(str, Enum):
    UPLOAD = "Upload"
    DOWNLOAD = "Download"
    PREVIEW = "Preview"
    METADATA_EDIT = "MetadataEdit"
    REPLACE = "Replace"
    DELETE = "Delete"
    SHARE = "Share"


class UserRole(str, Enum):
    EMPLOYEE = "Employee"
    TEAM_LEAD = "TeamLead"
    PROJECT_MANAGER = "ProjectManager"
    ADMINISTRATOR = "Administrator"


class NotificationType(str, Enum):
    PROJECT_UPDATE = "ProjectUpdate"
    TASK_ASSIGNMENT = "TaskAssignment"
    SYSTEM_ANNOUNCEMENT = "SystemAnnouncement"


class NotificationPriority(str, Enum):
    INFORMATIONAL = "Informational"
    IMPORTANT = "Important"
    URGENT = "Urgent"


class SortKey(str, Enum):
    UPLOADED_AT = "uploadedAt"
    TITLE = "title"
    CATEGORY = "category"
    FILE_SIZE = "fileSizeBytes"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


# ---------------------------------------------------------------------------
# Snapshots
# ---------------------------------------------------------------------------

class DocumentSnapshot(BaseModel):
    """Flat, immutable copy of one documents row."""

    model_config = ConfigDict(frozen=True)

    id: int
    title: str
    description: Optional[str] = None
    category: str
    file_name: str
    file_path: str
    file_type: str
    file_size_bytes: int
    uploaded_by_user_id: int
    project_id: Optional[int] = None
    task_id: Optional[int] = None
    uploaded_at: datetime
    updated_at: datetime
    scan_status: ScanStatus
    scan_requested_at: datetime
    scan_completed_at: Optional[datetime] = None
    scan_failure_reason: Optional[str] = None
    is_deleted: bool = False
    deleted_at: Optional[datetime] = None
    deleted_by: Optional[int] = None
    row_version: int = 1


class UserSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    display_name: str
    role: UserRole

    @property
    def is_administrator(self) -> bool:
        return self.role == UserRole.ADMINISTRATOR


class ProjectSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    manager_id: int
    member_ids: FrozenSet[int] = frozenset()


class ActivitySnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    document_id: int
    actor_user_id: int
    activity_type: ActivityType
    target_user_id: Optional[int] = None
    metadata_json: Optional[str] = None
    occurred_at: datetime

    @property
    def metadata(self) -> Dict[str, Any]:
        return json.loads(self.metadata_json) if self.metadata_json else {}


class DocumentListing(BaseModel):
    """A document plus the related values listing and search need."""

    model_config = ConfigDict(frozen=True)

    document: DocumentSnapshot
    tags: List[str] = Field(default_factory=list)
    uploader_name: str = ""
    project_name: Optional[str] = None

    @property
    def id(self) -> int:
        return self.document.id


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

class DocumentUploadRequest(BaseModel):
    title: str = ""
    description: Optional[str] = None
    category: str = ""
    project_id: Optional[int] = None
    task_id: Optional[int] = None
    tags: List[str] = Field(default_factory=list)


class DocumentUpdateMetadataRequest(BaseModel):
    """
    Partial metadata update. Only fields the caller actually set are applied
    (see ``model_fields_set``).
    """
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    tags: Optional[List[str]] = None


class DocumentShareRequest(BaseModel):
    user_ids: List[int] = Field(default_factory=list)


class DocumentQuery(BaseModel):
    category: Optional[str] = None
    project_id: Optional[int] = None
    from_date: Optional[date] = None
    to_date: Optional[date] = None
    search: Optional[str] = None
    sort_by: Optional[str] = None
    sort_dir: Optional[str] = None


# ---------------------------------------------------------------------------
# Messages and results
# ---------------------------------------------------------------------------

class ScanJob(BaseModel):
    """Immutable message handed to the scan queue."""

    model_config = ConfigDict(frozen=True)

    document_id: int
    file_path: str
    file_type: str
    uploaded_by_user_id: int
    project_id: Optional[int] = None
    enqueued_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_message(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class ContentHandle:
    """Open content stream returned by download/preview. Caller closes it."""

    __slots__ = ("stream", "content_type", "file_name")

    def __init__(self, stream: BinaryIO, content_type: str, file_name: str):
        self.stream = stream
        self.content_type = content_type
        self.file_name = file_name

    def read(self) -> bytes:
        return self.stream.read()

    def close(self) -> None:
        self.stream.close()

    def __enter__(self) -> "ContentHandle":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"<ContentHandle file_name='{self.file_name}' content_type='{self.content_type}'>"
