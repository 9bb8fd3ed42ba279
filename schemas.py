"""
Database Schemas

Pydantic models describing the documents stored in MongoDB and the payloads
returned by the API. Fields left as None are dropped from responses.
- User -> "users" collection
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class User(BaseModel):
    """Users collection schema (collection name: users)"""
    id: Optional[str] = Field(None, description="Document id assigned by MongoDB")
    name: Optional[str] = Field(None, description="Full name")
    avatar_name: Optional[str] = Field(None, description="Original uploaded avatar file name")
    avatar_type: Optional[str] = Field(None, description="Avatar extension: jpg or png")
    age: Optional[int] = Field(None, description="Age in years, 1 to 100")
    year_of_birth: Optional[int] = Field(None, description="Current year minus age")
    note: Optional[str] = Field(None, description="Free text note")
    email: Optional[str] = Field(None, description="User email (unique)")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "User":
        data = dict(document)
        object_id = data.pop("_id", None)
        if object_id is not None:
            data["id"] = str(object_id)
        return cls(**data)


class UserList(BaseModel):
    count: int
    data: List[User]
