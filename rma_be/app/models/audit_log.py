from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import Session
from datetime import datetime
from typing import List, Optional

from app.models.rma_request import Base
from app.models.troubleshooting import JSONType


class RmaAuditLog(Base):
    __tablename__ = "rma_audit_log"

    audit_id = Column(Integer, primary_key=True, autoincrement=True)
    rma_id = Column(String(36), ForeignKey("rma_requests.rma_id"), nullable=False, index=True)
    event_type = Column(String(50), nullable=False)
    actor_type = Column(String(20), nullable=False)  # CUSTOMER, SYSTEM, RULE_ENGINE, AGENT
    payload_json = Column(JSONType, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)


def record_event(db: Session, rma_id: str, event_type: str, actor_type: str, payload: Optional[dict] = None) -> RmaAuditLog:
    """Append one audit row inside the caller's transaction."""
    entry = RmaAuditLog(
        rma_id=rma_id,
        event_type=event_type,
        actor_type=actor_type,
        payload_json=payload or {},
        created_at=datetime.utcnow(),
    )
    db.add(entry)
    db.flush()
    return entry


def get_audit_log(db: Session, rma_id: str) -> List[RmaAuditLog]:
    return (
        db.query(RmaAuditLog)
        .filter(RmaAuditLog.rma_id == rma_id)
        .order_by(RmaAuditLog.created_at.asc(), RmaAuditLog.audit_id.asc())
        .all()
    )
