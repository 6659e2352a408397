"""DashDocs Engine — configuration, errors, logging, operation context, health."""
