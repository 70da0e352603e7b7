"""
Database Schemas for JustHike

Each Pydantic model maps to a MongoDB collection (lowercased class name).
- User -> "user"
- Trek -> "trek"
- Guide -> "guide"
- Booking -> "booking"
- Blog -> "blog"

References to other documents are stored as ObjectIds in *_id fields.
Image fields hold a path relative to the upload root; absolute URLs are
built per request.
"""

from datetime import datetime
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field

Role = Literal["admin", "guide", "user"]
Difficulty = Literal["easy", "moderate", "hard"]
BookingStatus = Literal["pending", "confirmed", "cancelled", "completed"]
BlogStatus = Literal["draft", "published"]

# ObjectId references are validated at the route layer.
ObjectRef = Any


class User(BaseModel):
    email: EmailStr
    password_hash: str = Field(..., description="bcrypt hash, never serialized")
    name: str = Field(..., min_length=1)
    phone_number: Optional[str] = None
    role: Role = Field("user")
    profile_picture: Optional[str] = Field(None, description="Relative upload path")
    reset_password_token: Optional[str] = Field(None, description="SHA-256 of the raw reset token")
    reset_password_expires: Optional[datetime] = None


class Trek(BaseModel):
    title: str = Field(..., min_length=1, description="Trek title")
    description: str = Field(..., min_length=1)
    difficulty: Difficulty = Field("moderate")
    duration_days: int = Field(..., ge=1, description="Total duration in days")
    price: float = Field(..., gt=0, description="Price per participant")
    location: str = Field(..., min_length=1)
    max_group_size: int = Field(10, ge=1)
    is_active: bool = Field(True, description="Listed publicly when true")
    image: Optional[str] = Field(None, description="Relative upload path")
    created_by: Optional[ObjectRef] = None


class Guide(BaseModel):
    name: str = Field(..., min_length=1)
    email: Optional[EmailStr] = None
    phone_number: Optional[str] = None
    bio: Optional[str] = None
    experience_years: int = Field(0, ge=0)
    languages: List[str] = Field(default_factory=list)
    image: Optional[str] = Field(None, description="Relative upload path")
    created_by: Optional[ObjectRef] = None


class Booking(BaseModel):
    user_id: ObjectRef
    trek_id: ObjectRef
    guide_id: Optional[ObjectRef] = None
    start_date: datetime
    participants: int = Field(..., ge=1)
    total_price: float = Field(..., ge=0, description="participants x trek price")
    status: BookingStatus = Field("pending")


class Blog(BaseModel):
    title: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
    excerpt: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    image: Optional[str] = Field(None, description="Relative upload path")
    status: BlogStatus = Field("draft")
    author_id: Optional[ObjectRef] = None
