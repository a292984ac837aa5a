from datetime import datetime
from typing import Optional, List

from sqlalchemy.orm import Session

from app.core.security import get_password_hash, verify_password
from app.models.user import User
from app.models.enums import UserRole
from app.schemas.user import UserCreate, UserUpdate

def get_user(db: Session, user_id: int) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()

def get_user_by_username(db: Session, username: str) -> Optional[User]:
    return db.query(User).filter(User.username == username).first()

def get_users(db: Session, *, skip: int = 0, limit: int = 100) -> List[User]:
    return db.query(User).order_by(User.id).offset(skip).limit(limit).all()

def create_user(db: Session, *, obj_in: UserCreate) -> User:
    db_obj = User(
        username=obj_in.username,
        email=obj_in.email,
        hashed_password=get_password_hash(obj_in.password),
        role=obj_in.role.value,
        agent_id=obj_in.agent_id,
        is_active=True,
    )
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj

def authenticate(db: Session, *, username: str, password: str) -> Optional[User]:
    """Return the user if the password matches, recording the login time."""
    user = get_user_by_username(db, username=username)
    if user is None or not verify_password(password, user.hashed_password):
        return None
    user.last_login = datetime.utcnow()
    db.add(user)
    db.commit()
    db.refresh(user)
    return user

def count_admins(db: Session) -> int:
    return db.query(User).filter(User.role == UserRole.ADMIN.value).count()

def update_user(db: Session, *, db_obj: User, obj_in: UserUpdate) -> User:
    update_data = obj_in.model_dump(exclude_unset=True)
    # Only agent_id may be cleared with an explicit null
    update_data = {field: value for field, value in update_data.items() if value is not None or field == "agent_id"}
    if update_data.get("role") is not None:
        update_data["role"] = update_data["role"].value

    for field, value in update_data.items():
        setattr(db_obj, field, value)

    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj

def reset_password(db: Session, *, db_obj: User, password: str) -> User:
    db_obj.hashed_password = get_password_hash(password)
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj

def delete_user(db: Session, *, db_obj: User) -> None:
    db.delete(db_obj)
    db.commit()
