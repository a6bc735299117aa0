"""
Custom exception classes

Route handlers let these propagate; ``helix.main`` maps them to JSON error
responses.
"""
from typing import Dict, Optional


class HelixError(Exception):
    """Base class for domain errors"""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(HelixError):
    """Raised when create/update input is malformed"""
    status_code = 400

    def __init__(self, message: str, fields: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.fields = fields or {}


class NotFoundError(HelixError):
    """Raised when a referenced record doesn't exist"""
    status_code = 404

    def __init__(self, kind: str, record_id: str):
        super().__init__(f"{kind} {record_id} not found")
        self.kind = kind
        self.record_id = record_id


class StoreError(HelixError):
    """Raised when the persistence layer fails"""
    status_code = 500

    def __init__(self, message: str, kind: str = "", operation: str = ""):
        super().__init__(message)
        self.kind = kind
        self.operation = operation


class ConstraintError(StoreError):
    """Raised on duplicate primary key or unique value"""
    status_code = 409


class ReconciliationError(StoreError):
    """Raised when a reconciliation batch fails; carries committed progress"""

    def __init__(self, message: str, jurisdiction: str, committed: int, kind: str = ""):
        super().__init__(message, kind=kind, operation="reconcile")
        self.jurisdiction = jurisdiction
        self.committed = committed
