"""
DashDocs Documents.

Access resolution, listing queries and the lifecycle engine for
project-scoped documents. The engine itself lives in
dashdocs.documents.service, which depends on dashdocs.integrations.
"""

from dashdocs.documents.access import AccessResolver
from dashdocs.documents.query import apply_query

__all__ = [
    "AccessResolver",
    "apply_query",
]
