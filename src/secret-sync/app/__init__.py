"""Secret Sync service."""
