"""File and metadata validation for document uploads.

All checks run before anything touches the File Store, so a rejected
upload leaves no trace.
"""

from __future__ import annotations

import os
from typing import Iterable, List, Optional

from dashdocs.engine.config import DocumentPolicy
from dashdocs.engine.errors import DocumentValidationError


def file_extension(file_name: str) -> str:
    """
    Lower-cased extension including the dot, or "" when there is none.

    Example:
        >>> file_extension("Budget.XLSX")
        '.xlsx'
        >>> file_extension("README")
        ''
    """
    return os.path.splitext(os.path.basename(file_name or ""))[1].lower()


def validate_file(policy: DocumentPolicy, file_name: str, file_size: int) -> None:
    """Validate the extension and size of an incoming file."""
    if not file_name or not file_name.strip():
        raise DocumentValidationError("File name is required.", field="file_name")

    if len(file_name) > 255:
        raise DocumentValidationError(
            f"File name exceeds 255 characters (got {len(file_name)}).",
            field="file_name",
        )

    extension = file_extension(file_name)
    if extension not in policy.extensions:
        raise DocumentValidationError(
            "Unsupported file type.",
            field="file_name",
            extension=extension,
        )

    if file_size is None or file_size <= 0 or file_size > policy.max_file_size_bytes:
        max_mb = policy.max_file_size_bytes // (1024 * 1024)
        raise DocumentValidationError(
            f"File must be between 1 byte and {max_mb} MB.",
            field="file_size",
            file_size=file_size,
        )


def validate_title(policy: DocumentPolicy, title: Optional[str]) -> str:
    """Return the trimmed title or raise."""
    if title is None or not title.strip():
        raise DocumentValidationError("Title is required.", field="title")
    title = title.strip()
    if len(title) > policy.title_max_length:
        raise DocumentValidationError(
            f"Title exceeds {policy.title_max_length} characters.",
            field="title",
        )
    return title


def validate_description(policy: DocumentPolicy, description: Optional[str]) -> Optional[str]:
    """Return the trimmed description (None when absent) or raise."""
    if description is None:
        return None
    description = description.strip()
    if len(description) > policy.description_max_length:
        raise DocumentValidationError(
            f"Description exceeds {policy.description_max_length} characters.",
            field="description",
        )
    return description


def is_allowed_category(policy: DocumentPolicy, category: Optional[str]) -> bool:
    return bool(category and category.strip()) and category in policy.categories


def validate_category(policy: DocumentPolicy, category: Optional[str]) -> str:
    if not is_allowed_category(policy, category):
        raise DocumentValidationError(
            "Valid category is required.",
            field="category",
            allowed=sorted(policy.categories),
        )
    return category  # type: ignore[return-value]


def normalize_tags(policy: DocumentPolicy, tags: Optional[Iterable[str]]) -> List[str]:
    """
    Trim, drop blanks and de-duplicate case-insensitively, keeping the first
    spelling and the caller's order.

    Example:
        >>> normalize_tags(DocumentPolicy(), [" Q3 ", "q3", "", "finance"])
        ['Q3', 'finance']
    """
    seen = set()
    result: List[str] = []
    for raw in tags or []:
        if raw is None:
            continue
        tag = raw.strip()
        if not tag:
            continue
        if len(tag) > policy.tag_max_length:
            raise DocumentValidationError(
                f"Tag '{tag[:20]}…' exceeds {policy.tag_max_length} characters.",
                field="tags",
            )
        key = tag.casefold()
        if key in seen:
            continue
        seen.add(key)
        result.append(tag)
    return result


def validate_upload(
    policy: DocumentPolicy,
    title: Optional[str],
    category: Optional[str],
    file_name: str,
    file_size: int,
) -> None:
    """Validate the title, category and file of an upload in one go."""
    validate_title(policy, title)
    validate_category(policy, category)
    validate_file(policy, file_name, file_size)
