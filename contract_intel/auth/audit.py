"""
Audit event sinks.
"""
import logging

from .interfaces import AuditSink
from .models import AuditAction

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("contract_intel.audit")


class LoggingAuditSink(AuditSink):
    """Writes audit events to the "contract_intel.audit" logger."""

    def record(self, action: AuditAction, subject_type: str, subject_id: str, message: str) -> None:
        audit_logger.info(f"{action.value} {subject_type}={subject_id}: {message}")


def record_safely(
    sink: AuditSink,
    action: AuditAction,
    subject_type: str,
    subject_id: str,
    message: str,
) -> None:
    """
    Record an audit event without letting a sink failure abort the caller.

    The primary operation has already committed when this runs.
    """
    if sink is None:
        return
    try:
        sink.record(action, subject_type, subject_id, message)
    except Exception as e:
        logger.warning(f"Failed to record audit event {action.value} for {subject_type} {subject_id}: {e}")
