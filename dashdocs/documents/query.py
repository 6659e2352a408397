"""
DashDocs Query Engine — filter and sort an already view-scoped document set.

Pure and deterministic: the same listings and query always give the same
result. Tombstoned documents are dropped whatever the filters say.

Sorting uses one mapping table from the closed SortKey enum. A missing or
unrecognised sort key falls back to DEFAULT_SORT_KEY; a missing direction
falls back to DEFAULT_SORT_DIRECTION. Ties keep ascending id order.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from dashdocs.documents.models import (
    DocumentListing,
    DocumentQuery,
    SortDirection,
    SortKey,
)

DEFAULT_SORT_KEY = SortKey.UPLOADED_AT
DEFAULT_SORT_DIRECTION = SortDirection.DESC

SORT_FIELDS: Dict[SortKey, Callable[[DocumentListing], Any]] = {
    SortKey.UPLOADED_AT: lambda item: item.document.uploaded_at,
    SortKey.TITLE: lambda item: item.document.title.casefold(),
    SortKey.CATEGORY: lambda item: item.document.category,
    SortKey.FILE_SIZE: lambda item: item.document.file_size_bytes,
}

_SORT_KEY_LOOKUP = {key.value.lower(): key for key in SortKey}


def parse_sort_key(raw: Optional[str]) -> SortKey:
    """
    Map a caller-supplied sort key onto SortKey, case-insensitively.

    Example:
        >>> parse_sort_key("FileSizeBytes")
        <SortKey.FILE_SIZE: 'fileSizeBytes'>
        >>> parse_sort_key("owner")
        <SortKey.UPLOADED_AT: 'uploadedAt'>
    """
    if not raw:
        return DEFAULT_SORT_KEY
    return _SORT_KEY_LOOKUP.get(raw.strip().lower(), DEFAULT_SORT_KEY)


def parse_sort_direction(raw: Optional[str]) -> SortDirection:
    if raw and raw.strip().lower() == SortDirection.ASC.value:
        return SortDirection.ASC
    if raw and raw.strip().lower() == SortDirection.DESC.value:
        return SortDirection.DESC
    return DEFAULT_SORT_DIRECTION


def _as_date(value: Union[date, datetime, None]) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    return value


def matches_search(item: DocumentListing, needle: str) -> bool:
    """Case-insensitive substring match across title, description, uploader, project and tags."""
    doc = item.document
    haystacks = [doc.title, doc.description, item.uploader_name, item.project_name, *item.tags]
    return any(h is not None and needle in h.casefold() for h in haystacks)


def matches_filters(item: DocumentListing, query: DocumentQuery) -> bool:
    doc = item.document
    if doc.is_deleted:
        return False

    if query.category and query.category.strip() and doc.category != query.category:
        return False

    if query.project_id is not None and doc.project_id != query.project_id:
        return False

    uploaded_on = doc.uploaded_at.date()
    from_date = _as_date(query.from_date)
    if from_date is not None and uploaded_on < from_date:
        return False
    to_date = _as_date(query.to_date)
    if to_date is not None and uploaded_on > to_date:
        return False

    if query.search and query.search.strip():
        if not matches_search(item, query.search.strip().casefold()):
            return False

    return True


def sort_listings(
    items: Iterable[DocumentListing],
    sort_key: SortKey,
    direction: SortDirection,
) -> List[DocumentListing]:
    # Stable sort: pre-order by id so equal keys stay in ascending id order
    # in both directions.
    ordered = sorted(items, key=lambda item: item.id)
    ordered.sort(key=SORT_FIELDS[sort_key], reverse=direction == SortDirection.DESC)
    return ordered


def apply_query(
    items: Iterable[DocumentListing],
    query: Optional[DocumentQuery] = None,
    limit: Optional[int] = None,
) -> List[DocumentListing]:
    """Filter, sort and cap a view-scoped set of listings."""
    query = query or DocumentQuery()
    filtered = [item for item in items if matches_filters(item, query)]
    result = sort_listings(
        filtered,
        parse_sort_key(query.sort_by),
        parse_sort_direction(query.sort_dir),
    )
    if limit is not None:
        result = result[:limit]
    return result
