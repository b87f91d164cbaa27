"""Domain-specific exceptions"""

from typing import Any, Dict, List, Optional


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class StoreNotInitializedError(DomainException):
    """Store operation attempted before initialize() was started"""

    pass


class EntityNotFoundError(DomainException):
    """Write or update targeted an entity that does not exist"""

    def __init__(self, collection: str, key: str):
        super().__init__(f"{collection} entry not found: {key}")
        self.collection = collection
        self.key = key


class SnapshotValidationError(DomainException):
    """Import snapshot failed version, structural or referential checks"""

    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.errors = errors or []


class StorageError(DomainException):
    """Underlying storage engine failed"""

    def __init__(self, message: str, operation: str):
        super().__init__(f"{message} ({operation})")
        self.operation = operation


class BackupQuotaExceededError(DomainException):
    """Backup mirror does not fit in the available storage quota"""

    pass


class UnsatisfiableScheduleError(DomainException):
    """Manual overrides make the requested schedule total impossible"""

    pass
