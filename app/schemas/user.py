from pydantic import BaseModel, EmailStr, Field, model_validator
from typing import Optional
from datetime import datetime

from app.models.enums import UserRole

class UserBase(BaseModel):
    username: str = Field(..., min_length=3, max_length=100)
    email: EmailStr
    role: UserRole = UserRole.AGENT
    agent_id: Optional[int] = None

class UserCreate(UserBase):
    password: str = Field(..., min_length=8)

    @model_validator(mode="after")
    def agent_users_need_an_agent(self):
        if self.role == UserRole.AGENT and self.agent_id is None:
            raise ValueError("agent_id is required for users with the agent role")
        return self

class UserUpdate(BaseModel):
    username: Optional[str] = Field(default=None, min_length=3, max_length=100)
    email: Optional[EmailStr] = None
    role: Optional[UserRole] = None
    agent_id: Optional[int] = None
    is_active: Optional[bool] = None

class PasswordReset(BaseModel):
    password: str = Field(..., min_length=8)

class User(UserBase):
    id: int
    is_active: bool
    created_at: datetime
    last_login: Optional[datetime] = None

    class Config:
        from_attributes = True
