from datetime import datetime
from typing import Optional
from pydantic import BaseModel, EmailStr, Field

class UserDB(BaseModel):
    """Login identity. Marketplace roles live on the marketplace profile, not here."""

    id: Optional[str] = Field(None, alias="_id")
    email: EmailStr
    name: str
    password_hash: str
    created_at: datetime = Field(default_factory=datetime.utcnow)
    last_login_at: Optional[datetime] = None

    class Config:
        populate_by_name = True

class RevokedTokenDB(BaseModel):
    jti: str
    exp: datetime
