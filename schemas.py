"""
Database schemas and API payloads for the Store Ratings API

MongoDB collections are defined below using Pydantic models. Each document
class name is converted to lowercase for the collection name (User -> "user").

We will use these collections:
- user: system users (admin, normal user, store owner)
- store: registered stores
- rating: user ratings for stores, one per (user_id, store_id)
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, StrictInt, field_validator

import validation


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Role(str, Enum):
    SYSTEM_ADMIN = "SYSTEM_ADMIN"
    NORMAL_USER = "NORMAL_USER"
    STORE_OWNER = "STORE_OWNER"


# Documents

class User(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    name: str
    email: EmailStr
    address: str
    password_hash: str = Field(..., description="BCrypt hash of password")
    role: Role = Role.NORMAL_USER
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Store(BaseModel):
    name: str
    email: EmailStr
    address: str
    owner_id: Optional[str] = Field(None, description="Reference to user _id (STORE_OWNER)")
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Rating(BaseModel):
    user_id: str
    store_id: str
    value: int = Field(..., ge=validation.RATING_MIN, le=validation.RATING_MAX)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


# Requests

class _UserFields(BaseModel):
    name: str
    email: EmailStr
    address: str
    password: str

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        return validation.check_name(v)

    @field_validator("address")
    @classmethod
    def _address(cls, v: str) -> str:
        return validation.check_address(v)

    @field_validator("password")
    @classmethod
    def _password(cls, v: str) -> str:
        return validation.check_password(v)


class RegisterRequest(_UserFields):
    pass


class CreateUserRequest(_UserFields):
    role: Role


class LoginRequest(BaseModel):
    email: str
    password: str


class UpdatePasswordRequest(BaseModel):
    old_password: str
    new_password: str

    @field_validator("new_password")
    @classmethod
    def _new_password(cls, v: str) -> str:
        return validation.check_password(v)


class CreateStoreRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    email: EmailStr
    address: str
    owner_id: Optional[str] = None

    @field_validator("address")
    @classmethod
    def _address(cls, v: str) -> str:
        return validation.check_address(v)


class RatingRequest(BaseModel):
    store_id: str
    value: StrictInt

    @field_validator("value")
    @classmethod
    def _value(cls, v: int) -> int:
        return validation.check_rating_value(v)


# Listing

class SortOrder(str, Enum):
    asc = "asc"
    desc = "desc"


class UserSortField(str, Enum):
    name = "name"
    email = "email"
    address = "address"
    role = "role"


class AdminStoreSortField(str, Enum):
    name = "name"
    email = "email"
    address = "address"


class UserStoreSortField(str, Enum):
    name = "name"
    address = "address"


class RatingSortField(str, Enum):
    value = "value"
    created_at = "created_at"


# Responses

class AuthResponse(BaseModel):
    id: str
    name: str
    email: str
    address: str
    role: Role
    token: str


class UserOut(BaseModel):
    id: str
    name: str
    email: str
    address: str
    role: Role


class StoreRef(BaseModel):
    id: str
    name: str


class AdminUserOut(UserOut):
    store: Optional[StoreRef] = None
    store_average_rating: Optional[float] = None


class OwnerRef(BaseModel):
    id: str
    name: str
    email: str


class StoreOut(BaseModel):
    id: str
    name: str
    email: str
    address: str
    owner_id: Optional[str] = None


class AdminStoreOut(StoreOut):
    owner: Optional[OwnerRef] = None
    average_rating: Optional[float] = None
    rating_count: int = 0


class UserStoreOut(BaseModel):
    id: str
    name: str
    address: str
    overall_rating: Optional[float] = None
    rating_count: int = 0
    user_submitted_rating: Optional[int] = None


class RatingOut(BaseModel):
    id: str
    user_id: str
    store_id: str
    value: int
    created_at: datetime
    updated_at: datetime


class RatingStoreRef(BaseModel):
    id: str
    name: str
    address: str


class AdminRatingOut(BaseModel):
    id: str
    value: int
    created_at: datetime
    user: Optional[OwnerRef] = None
    store: Optional[RatingStoreRef] = None


class Rater(BaseModel):
    user_id: str
    user_name: str
    user_email: str
    rating_value: int


class OwnerDashboard(BaseModel):
    store_id: str
    store_name: str
    average_rating: Optional[float] = None
    rating_count: int = 0
    users_who_rated: List[Rater] = Field(default_factory=list)


class DashboardStats(BaseModel):
    total_users: int
    total_stores: int
    total_ratings: int


class Message(BaseModel):
    message: str
