import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import List

from app import schemas
from app.core import dependencies
from app.crud import crud_agent, crud_user
from app.db.session import get_db
from app.models.enums import UserRole
from app.models.user import User as UserModel

logger = logging.getLogger(__name__)
router = APIRouter()

def _get_user_or_404(db: Session, user_id: int) -> UserModel:
    user = crud_user.get_user(db, user_id=user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user

def _is_only_admin(db: Session, user: UserModel) -> bool:
    return user.role == UserRole.ADMIN.value and crud_user.count_admins(db) == 1

@router.get("/me", response_model=schemas.user.User)
def read_user_me(current_user: UserModel = Depends(dependencies.get_current_active_user)):
    """
    Get the logged-in user's account.
    """
    return current_user

@router.post("/", response_model=schemas.user.User, status_code=201)
def create_user(
    user_in: schemas.user.UserCreate,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(dependencies.get_current_admin)
):
    """
    Create a login. Admin only.
    """
    if crud_user.get_user_by_username(db, username=user_in.username):
        raise HTTPException(status_code=400, detail="A user with this username already exists.")
    if user_in.agent_id is not None and not crud_agent.get_agent(db, agent_id=user_in.agent_id):
        raise HTTPException(status_code=404, detail=f"Agent with id {user_in.agent_id} not found.")
    return crud_user.create_user(db, obj_in=user_in)

@router.get("/", response_model=List[schemas.user.User])
def read_users(
    db: Session = Depends(get_db),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    current_user: UserModel = Depends(dependencies.get_current_admin)
):
    return crud_user.get_users(db, skip=skip, limit=limit)

@router.get("/{user_id}", response_model=schemas.user.User)
def read_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(dependencies.get_current_admin)
):
    return _get_user_or_404(db, user_id)

@router.put("/{user_id}", response_model=schemas.user.User)
def update_user(
    user_id: int,
    user_in: schemas.user.UserUpdate,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(dependencies.get_current_admin)
):
    """
    Change a login's details, role or active flag. Admin only.
    """
    user = _get_user_or_404(db, user_id)
    if user_in.username and user_in.username != user.username and crud_user.get_user_by_username(db, username=user_in.username):
        raise HTTPException(status_code=400, detail="A user with this username already exists.")
    if user_in.agent_id is not None and not crud_agent.get_agent(db, agent_id=user_in.agent_id):
        raise HTTPException(status_code=404, detail=f"Agent with id {user_in.agent_id} not found.")

    role = user_in.role.value if user_in.role else user.role
    agent_id = user_in.agent_id if "agent_id" in user_in.model_fields_set else user.agent_id
    if role == UserRole.AGENT.value and agent_id is None:
        raise HTTPException(status_code=400, detail="agent_id is required for users with the agent role")
    losing_admin = role != UserRole.ADMIN.value or user_in.is_active is False
    if losing_admin and _is_only_admin(db, user):
        raise HTTPException(status_code=400, detail="Cannot demote or deactivate the only admin user")

    return crud_user.update_user(db, db_obj=user, obj_in=user_in)

@router.delete("/{user_id}", status_code=204)
def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(dependencies.get_current_admin)
):
    user = _get_user_or_404(db, user_id)
    if _is_only_admin(db, user):
        raise HTTPException(status_code=400, detail="Cannot delete the only admin user")
    crud_user.delete_user(db, db_obj=user)
    logger.info(f"User {user_id} deleted by {current_user.username}")

@router.post("/{user_id}/reset-password")
def reset_password(
    user_id: int,
    password_in: schemas.user.PasswordReset,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(dependencies.get_current_admin)
):
    user = _get_user_or_404(db, user_id)
    crud_user.reset_password(db, db_obj=user, password=password_in.password)
    logger.info(f"Password for user {user_id} reset by {current_user.username}")
    return {"message": "Password reset successfully"}
