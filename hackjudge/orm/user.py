"""
hackjudge/orm/user.py
Platform accounts. Judges are users with the JUDGE role.
"""
from enum import Enum

from sqlalchemy import Column, String, Boolean, Enum as SQLEnum

from hackjudge.orm.base import BaseModel


class UserRole(str, Enum):
    PARTICIPANT = "participant"
    JUDGE = "judge"
    ADMIN = "admin"


class User(BaseModel):
    __tablename__ = "users"

    email = Column(String(255), nullable=False, unique=True, index=True)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    role = Column(SQLEnum(UserRole), nullable=False, default=UserRole.PARTICIPANT, index=True)

    # Soft delete flag; inactive judges are excluded from the roster
    is_active = Column(Boolean, default=True, nullable=False)

    @property
    def display_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "role": self.role.value if self.role else None,
            "isActive": self.is_active,
            "dateAdded": self.created_at.isoformat() if self.created_at else None,
        }
