from sqlalchemy import Column, Integer, String, Boolean, DateTime, UniqueConstraint, func
from sqlalchemy.orm import Session
from datetime import datetime
from typing import Optional

from app.models.rma_request import Base
from app.models.troubleshooting import JSONType


class RmaPlaybook(Base):
    __tablename__ = "rma_playbooks"

    id = Column(Integer, primary_key=True, index=True)
    sku_group_name = Column(String(100), nullable=False, index=True)
    playbook_json = Column(JSONType, nullable=False)
    version = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (UniqueConstraint("sku_group_name", "version", name="uq_playbook_group_version"),)


def get_active_playbook_row(db: Session, sku_group_name: str) -> Optional[RmaPlaybook]:
    return (
        db.query(RmaPlaybook)
        .filter(RmaPlaybook.sku_group_name == sku_group_name, RmaPlaybook.is_active.is_(True))
        .order_by(RmaPlaybook.version.desc())
        .first()
    )


def insert_playbook_version(db: Session, sku_group_name: str, playbook_json: dict, is_active: bool = True) -> RmaPlaybook:
    """Append a new version for the group; existing versions are never mutated
    except for their active flag."""
    max_version = (
        db.query(func.max(RmaPlaybook.version))
        .filter(RmaPlaybook.sku_group_name == sku_group_name)
        .scalar()
    )
    if is_active:
        db.query(RmaPlaybook).filter(
            RmaPlaybook.sku_group_name == sku_group_name,
            RmaPlaybook.is_active.is_(True),
        ).update({RmaPlaybook.is_active: False}, synchronize_session=False)
    row = RmaPlaybook(
        sku_group_name=sku_group_name,
        playbook_json=playbook_json,
        version=(max_version or 0) + 1,
        is_active=is_active,
        updated_at=datetime.utcnow(),
    )
    db.add(row)
    db.flush()
    return row
