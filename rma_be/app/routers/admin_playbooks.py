from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.models.rma_request import get_db
from app.schemas.playbook import PlaybookOut, PlaybookUpsertIn
from app.services import admin_service
from app.utils.security import get_current_admin


router = APIRouter()


# 26. Upsert playbook (Admin)
@router.post("/playbook/upsert")
def upsert_playbook(payload: PlaybookUpsertIn, db: Session = Depends(get_db), admin: str = Depends(get_current_admin)):
    row = admin_service.upsert_playbook(db, payload.skuGroupName, payload.playbookJson, payload.isActive)
    return {"success": True, "skuGroupName": row.sku_group_name, "version": row.version, "isActive": row.is_active}


# 27. Get active playbook (Admin)
@router.get("/playbook/{sku_group_name}", response_model=PlaybookOut)
def get_playbook(sku_group_name: str, db: Session = Depends(get_db), admin: str = Depends(get_current_admin)):
    return admin_service.get_playbook(db, sku_group_name)
