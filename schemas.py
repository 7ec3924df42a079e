"""
Database Schemas

MongoDB collection schemas and request bodies, defined with Pydantic.
Model name is converted to lowercase for the collection name:
- User -> "user" collection
- Blog -> "blog" collection
Comments are embedded in their blog document rather than stored on their own.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field


class ImageRef(BaseModel):
    """Media host identifier plus retrieval URL."""
    public_id: str = Field(..., description="Media host identifier")
    url: str = Field(..., description="Public URL of the asset")


class User(BaseModel):
    """
    Users collection schema
    Collection name: "user"
    """
    name: str = Field(..., description="Display name")
    email: EmailStr = Field(..., description="Unique email address")
    role: str = Field("user", description="Account role")
    bio: str = Field("Bio", description="Short profile text")
    password: str = Field(..., description="BCrypt password hash")
    avatar: ImageRef
    reset_password_token: Optional[str] = Field(None, description="sha256 of the pending reset token")
    reset_password_expire: Optional[datetime] = Field(None, description="Reset token expiry (UTC)")


class Comment(BaseModel):
    """Embedded in Blog.comments, one per user per blog."""
    user: str = Field(..., description="ID of the commenting user")
    name: str = Field(..., description="User name at the time of commenting")
    comment: str


class Blog(BaseModel):
    """
    Blog posts collection schema
    Collection name: "blog"
    """
    author: str = Field(..., description="ID of the authoring user")
    title: str
    description: str
    category: str
    image: Optional[ImageRef] = None
    comments: List[Comment] = []
    num_of_comments: int = Field(0, ge=0, description="Always len(comments)")


# Request bodies

class RegisterRequest(BaseModel):
    name: str
    email: EmailStr
    password: str


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class UpdateProfileRequest(BaseModel):
    name: Optional[str] = None
    bio: Optional[str] = None
    avatar: Optional[str] = Field(None, description="Inline image (data URI); empty keeps the current avatar")


class UpdatePasswordRequest(BaseModel):
    old_password: str
    new_password: str
    confirm_password: str


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    password: str
    confirm_password: str


class BlogRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    image: Optional[str] = Field(None, description="Inline image (data URI); empty keeps the current image")


class CommentRequest(BaseModel):
    blog_id: str
    comment: str


class ContactRequest(BaseModel):
    subject: str
    message: str


class BlogListQuery(BaseModel):
    """Listing filter as parsed from the query string."""
    page: int = 1
    limit: int = 5
    search: str = ""
    category: str = "All"
    sort_field: str = "created_at"
    sort_direction: int = 1
