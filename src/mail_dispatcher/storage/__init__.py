from mail_dispatcher.storage.base import AuditLog, Directory
from mail_dispatcher.storage.sqlite import SqliteStore

__all__ = ["AuditLog", "Directory", "SqliteStore"]
