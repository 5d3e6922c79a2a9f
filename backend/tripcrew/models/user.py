"""
User model for MongoDB storage
"""

from datetime import datetime

from pydantic import BaseModel, Field


class User(BaseModel):
    """
    User record. Identity comes from the auth service (JWT subject);
    reputation_score is only ever written by the reputation ledger.
    """

    google_id: str = Field(..., description="User id issued by the auth service")
    email: str | None = Field(None, description="User email address")
    name: str = Field(default="", description="User full name")
    picture: str | None = Field(None, description="URL to user profile picture")
    reputation_score: int = Field(default=0, ge=0, description="Non-negative reputation score")

    # Timestamps
    created_at: datetime = Field(
        default_factory=datetime.utcnow, description="Account creation timestamp"
    )
    updated_at: datetime = Field(
        default_factory=datetime.utcnow, description="Last update timestamp"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "google_id": "123456789",
                "email": "user@example.com",
                "name": "John Doe",
                "picture": "https://example.com/photo.jpg",
                "reputation_score": 110,
            }
        }


class PublicProfile(BaseModel):
    """What anyone other than the data subject may see about a user."""

    user_id: str
    initials: str
    reputation_score: int = 0


class SelfProfile(PublicProfile):
    """The data subject's own view."""

    name: str = ""
    email: str | None = None
    picture: str | None = None
