"""
Audit logging for link, unlink and balance decisions.
"""

import json
import threading
from collections import Counter
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import structlog

from ..config import get_settings
from ..models import AuditEntry, AuditAction

logger = structlog.get_logger()


class AuditLogger:
    """
    Logger for the audit trail of user-visible decisions.
    Keeps entries in memory, mirrors them to structlog and can export to JSON.
    """

    def __init__(self, session_id: str = "default"):
        self.session_id = session_id
        self.entries: List[AuditEntry] = []
        self.settings = get_settings()
        self._lock = threading.Lock()

    def log(self, entry: AuditEntry) -> None:
        """Add an audit entry."""
        with self._lock:
            self.entries.append(entry)

        log = logger.info if entry.success else logger.warning
        log(
            entry.message,
            action=entry.action.value,
            user_id=entry.user_id,
            transaction_ids=entry.transaction_ids,
            statement_id=entry.statement_id,
            success=entry.success,
        )

    def record(
        self,
        action: AuditAction,
        message: str,
        user_id: Optional[str] = None,
        transaction_ids: Optional[List[str]] = None,
        statement_id: Optional[str] = None,
        success: bool = True,
        error_message: Optional[str] = None,
        **details,
    ) -> AuditEntry:
        """Build and log an entry in one call."""
        entry = AuditEntry(
            action=action,
            user_id=user_id,
            transaction_ids=list(transaction_ids or []),
            statement_id=statement_id,
            message=message,
            details=details,
            success=success,
            error_message=error_message,
        )
        self.log(entry)
        return entry

    def get_entries(
        self,
        action_filter: Optional[AuditAction] = None,
        success_only: bool = False,
    ) -> List[AuditEntry]:
        """Get filtered audit entries."""
        entries = list(self.entries)

        if action_filter:
            entries = [e for e in entries if e.action == action_filter]

        if success_only:
            entries = [e for e in entries if e.success]

        return entries

    def export_to_file(self, output_path: Optional[Path] = None) -> Path:
        """Export audit log to JSON file."""
        if output_path is None:
            output_path = self.settings.reports_dir / f"audit_{self.session_id}.json"

        output_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "session_id": self.session_id,
            "exported_at": datetime.utcnow().isoformat(),
            "total_entries": len(self.entries),
            "entries": [
                {
                    "id": e.id,
                    "timestamp": e.timestamp.isoformat(),
                    "action": e.action.value,
                    "user_id": e.user_id,
                    "transaction_ids": e.transaction_ids,
                    "statement_id": e.statement_id,
                    "message": e.message,
                    "details": e.details,
                    "success": e.success,
                    "error_message": e.error_message,
                }
                for e in self.entries
            ],
        }

        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False, default=str)

        logger.info("Audit log exported", path=str(output_path))
        return output_path

    def summary(self) -> dict:
        """Get summary statistics of audit log."""
        action_counts = Counter(e.action.value for e in self.entries)
        success_count = sum(1 for e in self.entries if e.success)

        return {
            "total_entries": len(self.entries),
            "success_count": success_count,
            "error_count": len(self.entries) - success_count,
            "action_counts": dict(action_counts),
        }
