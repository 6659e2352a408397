"""
DashDocs — document access control and lifecycle engine.

Upload → scan enqueue → scan gate → download / preview / replace /
delete / share, scoped by ownership, project membership, explicit
sharing and the Administrator role.
"""

__version__ = "1.0.0"
__all__ = ["engine", "db", "documents", "storage", "integrations"]
