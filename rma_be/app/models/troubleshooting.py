from sqlalchemy import Column, Integer, String, Boolean, Float, Text, ForeignKey, JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Session
from typing import Optional

from app.models.rma_request import Base

# JSONB on Postgres, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


class RmaTroubleshooting(Base):
    __tablename__ = "rma_troubleshooting"

    id = Column(Integer, primary_key=True, index=True)
    rma_id = Column(String(36), ForeignKey("rma_requests.rma_id"), nullable=False, unique=True, index=True)
    symptoms_json = Column(JSONType, nullable=True)
    steps_completed_json = Column(JSONType, nullable=True)
    evidence_json = Column(JSONType, nullable=True)
    customer_opted_out_of_ts = Column(Boolean, nullable=False, default=False)

    # Informational only; never read by the rules engine
    ai_summary = Column(Text, nullable=True)
    ai_recommendation = Column(Text, nullable=True)
    ai_confidence = Column(Float, nullable=True)


def get_troubleshooting_row(db: Session, rma_id: str) -> Optional[RmaTroubleshooting]:
    return db.query(RmaTroubleshooting).filter(RmaTroubleshooting.rma_id == rma_id).first()


def get_or_create_troubleshooting_row(db: Session, rma_id: str) -> RmaTroubleshooting:
    row = get_troubleshooting_row(db, rma_id)
    if not row:
        row = RmaTroubleshooting(
            rma_id=rma_id,
            steps_completed_json=[],
            evidence_json=[],
            customer_opted_out_of_ts=False,
        )
        db.add(row)
        db.flush()
    return row
