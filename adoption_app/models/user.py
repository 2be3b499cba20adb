"""
User profile model.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

ROLE_USER = "user"
ROLE_SHELTER = "shelter"
ROLES = (ROLE_USER, ROLE_SHELTER)


@dataclass
class UserProfile:
    """Public profile stored in ``users/{uid}``."""
    uid: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    photo_url: Optional[str] = None
    role: str = ROLE_USER
    is_verified_shelter: bool = False
    created_at: Optional[datetime] = None

    @classmethod
    def from_firestore_doc(cls, doc_id: str, data: dict) -> 'UserProfile':
        return cls(
            uid=data.get("uid") or doc_id,
            email=data.get("email"),
            display_name=data.get("display_name"),
            photo_url=data.get("photo_url"),
            role=data.get("role") or ROLE_USER,
            is_verified_shelter=bool(data.get("is_verified_shelter", False)),
            created_at=data.get("created_at"),
        )

    def to_firestore_document(self) -> dict:
        """
        Convert to the document written when a profile is first created.

        The verification flag always starts false; only a trusted party
        outside this application may set it.
        """
        from google.cloud import firestore as firestore_module

        return {
            "uid": self.uid,
            "email": self.email,
            "display_name": self.display_name,
            "role": self.role,
            "is_verified_shelter": False,
            "created_at": firestore_module.SERVER_TIMESTAMP,
        }

    def to_dict(self) -> dict:
        return {
            "uid": self.uid,
            "display_name": self.display_name,
            "photo_url": self.photo_url,
            "role": self.role,
            "is_verified_shelter": self.is_verified_shelter,
            "created_at": self.created_at.isoformat() if isinstance(self.created_at, datetime) else None,
        }
