"""DashDocs Database — declarative base, ORM tables, session scope."""
