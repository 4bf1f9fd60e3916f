"""
Audit logging service
JSON-lines record of every calendar mutation with before/after snapshots
"""

import json
import logging
from typing import Dict, Any, Optional
from datetime import datetime, timezone
from dataclasses import dataclass, asdict
from enum import Enum

logger = logging.getLogger(__name__)

AUDIT_LOGGER_NAME = "audit"
SENSITIVE_FIELDS = ('password', 'token', 'secret', 'credential')

class AuditAction(str, Enum):
    """Audit action types"""
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"

@dataclass
class AuditLogEntry:
    """Represents a single audit log entry"""
    timestamp: datetime
    operation: str
    action: AuditAction
    calendar_id: Optional[str]
    event_id: Optional[str]
    before_state: Optional[Dict[str, Any]]
    after_state: Optional[Dict[str, Any]]
    success: bool
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['timestamp'] = self.timestamp.isoformat()
        data['action'] = self.action.value
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)

def _sanitize(state: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Mask values whose key looks like a secret"""
    if not state:
        return None

    sanitized = dict(state)
    for key in sanitized:
        if any(field in key.lower() for field in SENSITIVE_FIELDS):
            sanitized[key] = "***REDACTED***"
    return sanitized

class AuditLogger:
    """Writes audit entries to the dedicated `audit` logger"""

    def __init__(self, log_file: Optional[str] = None):
        self.log_file = log_file
        self.audit_logger = logging.getLogger(AUDIT_LOGGER_NAME)
        self.audit_logger.setLevel(logging.INFO)
        if log_file:
            self._attach_file_handler(log_file)

    def _attach_file_handler(self, log_file: str):
        if any(isinstance(h, logging.FileHandler) for h in self.audit_logger.handlers):
            return

        file_handler = logging.FileHandler(log_file, mode='a', encoding='utf-8')
        file_handler.setFormatter(logging.Formatter('%(message)s'))
        self.audit_logger.addHandler(file_handler)
        self.audit_logger.propagate = False

    def log_operation(
        self,
        operation: str,
        action: AuditAction,
        calendar_id: Optional[str] = None,
        event_id: Optional[str] = None,
        before_state: Optional[Dict[str, Any]] = None,
        after_state: Optional[Dict[str, Any]] = None,
        success: bool = True,
        error: Optional[str] = None
    ) -> AuditLogEntry:
        """
        Record a calendar mutation

        Args:
            operation: Tool name that performed the mutation
            action: Kind of mutation
            calendar_id: Calendar the event belongs to
            event_id: Event affected
            before_state: Event payload before the operation
            after_state: Event payload after the operation
            success: Whether the operation was successful
            error: Error message if operation failed
        """
        entry = AuditLogEntry(
            timestamp=datetime.now(timezone.utc),
            operation=operation,
            action=action,
            calendar_id=calendar_id,
            event_id=event_id,
            before_state=_sanitize(before_state),
            after_state=_sanitize(after_state),
            success=success,
            error=error
        )
        self.audit_logger.info(entry.to_json())
        return entry
