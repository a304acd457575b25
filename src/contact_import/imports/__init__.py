from contact_import.imports.models import ImportBatch, ImportLogEntry, ImportStatus, LogEntryStatus

__all__ = ["ImportBatch", "ImportLogEntry", "ImportStatus", "LogEntryStatus"]
