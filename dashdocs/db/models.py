"""
DashDocs Models — SQLAlchemy tables for the document store.

Tables:
1. users             — Directory: display name + role (read-only for the engine)
2. projects          — Directory: project + manager (read-only for the engine)
3. project_members   — Directory: project ↔ user membership
4. tasks             — Directory: tasks documents may be attached to
5. documents         — Aggregate root: metadata, scan state, tombstone
6. document_tags     — Tag values per document
7. document_shares   — Explicit read grants
8. document_activity — Append-only audit trail

No ORM relationships are declared: repositories read flat rows and resolve
relations with explicit lookups.
"""

from __future__ import annotations

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)

from dashdocs.db.base import Base, SoftDeleteMixin, TimestampMixin, utcnow


# ---------------------------------------------------------------------------
# 1-4. Directory tables
# ---------------------------------------------------------------------------

class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    display_name = Column(String(200), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    role = Column(String(30), default="Employee", nullable=False, index=True)

    __table_args__ = (
        CheckConstraint(
            "role IN ('Employee', 'TeamLead', 'ProjectManager', 'Administrator')",
            name="ck_users_role",
        ),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, display_name='{self.display_name}', role='{self.role}')>"


class Project(Base, TimestampMixin):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    project_manager_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<Project(id={self.id}, name='{self.name}')>"


class ProjectMember(Base):
    __tablename__ = "project_members"

    id = Column(Integer, primary_key=True, autoincrement=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    role = Column(String(50), nullable=True)
    assigned_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("project_id", "user_id", name="uq_project_member"),
        Index("idx_pm_user_id", "user_id"),
    )


class Task(Base, TimestampMixin):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=True, index=True)
    title = Column(String(200), nullable=False)


# ---------------------------------------------------------------------------
# 5. Documents
# ---------------------------------------------------------------------------

class Document(Base, SoftDeleteMixin):
    __tablename__ = "documents"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(200), nullable=False)
    description = Column(String(2000), nullable=True)
    category = Column(String(50), nullable=False, index=True)
    file_name = Column(String(255), nullable=False)
    file_path = Column(String(500), nullable=False)
    file_type = Column(String(255), nullable=False)
    file_size_bytes = Column(BigInteger, nullable=False)
    uploaded_by_user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=True, index=True)
    task_id = Column(Integer, ForeignKey("tasks.id"), nullable=True)
    uploaded_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    scan_status = Column(String(20), default="Pending", nullable=False, index=True)
    scan_requested_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    scan_completed_at = Column(DateTime(timezone=True), nullable=True)
    scan_failure_reason = Column(String(500), nullable=True)

    row_version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": row_version}

    __table_args__ = (
        CheckConstraint(
            "scan_status IN ('Pending', 'Clean', 'Rejected')",
            name="ck_documents_scan_status",
        ),
        CheckConstraint(
            "file_size_bytes > 0",
            name="ck_documents_file_size",
        ),
    )

    def __repr__(self) -> str:
        return f"<Document(id={self.id}, title='{self.title}', scan='{self.scan_status}')>"


# ---------------------------------------------------------------------------
# 6. Document Tags
# ---------------------------------------------------------------------------

class DocumentTag(Base):
    __tablename__ = "document_tags"

    id = Column(Integer, primary_key=True, autoincrement=True)
    document_id = Column(Integer, ForeignKey("documents.id", ondelete="CASCADE"), nullable=False)
    tag_value = Column(String(64), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("document_id", "tag_value", name="uq_document_tag"),
        Index("idx_dt_document_id", "document_id"),
    )


# ---------------------------------------------------------------------------
# 7. Document Shares
# ---------------------------------------------------------------------------

class DocumentShare(Base):
    __tablename__ = "document_shares"

    id = Column(Integer, primary_key=True, autoincrement=True)
    document_id = Column(Integer, ForeignKey("documents.id", ondelete="CASCADE"), nullable=False)
    shared_with_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    shared_with_team_key = Column(String(100), nullable=True)
    shared_by_user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    shared_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("document_id", "shared_with_user_id", name="uq_document_share_user"),
        Index("idx_ds_shared_with", "shared_with_user_id"),
    )


# ---------------------------------------------------------------------------
# 8. Document Activity (append-only)
# ---------------------------------------------------------------------------

class DocumentActivity(Base):
    __tablename__ = "document_activity"

    id = Column(Integer, primary_key=True, autoincrement=True)
    document_id = Column(Integer, ForeignKey("documents.id", ondelete="CASCADE"), nullable=False)
    actor_user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    activity_type = Column(String(20), nullable=False)
    target_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    metadata_json = Column(String(4000), nullable=True)
    occurred_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "activity_type IN ('Upload', 'Download', 'Preview', 'MetadataEdit', "
            "'Replace', 'Delete', 'Share')",
            name="ck_document_activity_type",
        ),
        Index("idx_da_document_id", "document_id"),
    )
