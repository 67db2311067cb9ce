"""User models."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from colocapp.models.listing import CamelModel


class UserProfile(BaseModel):
    """Signed-in user as reported by the auth provider."""
    id: str = Field(..., description="Auth provider user id")
    display_name: Optional[str] = None
    email: Optional[str] = None
    photo_url: Optional[str] = None


class UserDocument(CamelModel):
    """Profile document stored in the users collection."""
    display_name: Optional[str] = None
    email: Optional[str] = None
    photo_url: Optional[str] = Field(None, alias="photoURL")
    student_card_url: Optional[str] = Field(None, alias="studentCardURL")
    status: Optional[str] = Field(None, description="Set to pending when a student card is uploaded")
    is_verified: bool = Field(False, description="Student card checked by an administrator")
    is_admin: bool = False
    favorites: list[str] = Field(default_factory=list, description="Favorite listing ids")
    budget: Optional[float] = None
    location: Optional[str] = None
    housing_type: Optional[str] = None
    description: Optional[str] = None
    updated_at: Optional[datetime] = None


class ProfileUpdate(CamelModel):
    """Searching-student details edited on the profile screen."""
    budget: float = Field(..., gt=0, description="Monthly budget")
    location: str = Field(..., min_length=1, description="Preferred area")
    housing_type: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
