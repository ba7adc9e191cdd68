# server/models/user.py

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from . import Base


# -------------------------------
# Lifecycle
# -------------------------------

@dataclass(frozen=True)
class Active:
    pass


@dataclass(frozen=True)
class Deleted:
    at: datetime


# -------------------------------
# User Model
# -------------------------------

class User(Base):
    """
    Login account. Rows are never removed; deletion stamps `deleted_at`.
    The password column holds a bcrypt hash only.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, index=True, nullable=False)
    password = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)
    deleted_at = Column(DateTime, nullable=True)

    profile = relationship("UserProfile", back_populates="user", uselist=False)

    @property
    def lifecycle(self):
        if self.deleted_at is None:
            return Active()
        return Deleted(at=self.deleted_at)

    @property
    def is_active(self) -> bool:
        return isinstance(self.lifecycle, Active)

    def mark_deleted(self, at: datetime):
        self.deleted_at = at
        if self.profile is not None:
            self.profile.deleted_at = at


# -------------------------------
# User Profile Model
# -------------------------------

class UserProfile(Base):
    """
    Display attributes of a user, one row per user.
    """
    __tablename__ = "user_profiles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    name = Column(String, default="")
    birthday = Column(String, default="")
    phone = Column(String, default="")
    gender = Column(String, default="")
    email = Column(String, default="")
    address = Column(String, default="")
    date_join = Column(String, default="")
    insurance_number = Column(String, default="")
    id_card = Column(String, default="")
    avatar = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)
    deleted_at = Column(DateTime, nullable=True)

    user = relationship("User", back_populates="profile")
