from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app import schemas
from app.core import dependencies
from app.crud import crud_revenue_share
from app.db.session import get_db
from app.models.user import User as UserModel

router = APIRouter()

@router.get("/", response_model=List[schemas.RevenueShare])
def read_revenue_shares(
    db: Session = Depends(get_db),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    current_user: UserModel = Depends(dependencies.get_current_admin)
):
    """
    Every revenue share line item, newest first. Admin only.
    """
    return crud_revenue_share.get_revenue_shares(db, skip=skip, limit=limit)
