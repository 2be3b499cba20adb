"""
Data models and schemas for adoption listings.
"""
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Optional

STATUS_AVAILABLE = "available"
STATUS_RESERVED = "reserved"
STATUS_ADOPTED = "adopted"
STATUSES = (STATUS_AVAILABLE, STATUS_RESERVED, STATUS_ADOPTED)

SEXES = ("unknown", "male", "female")


def to_epoch_seconds(value) -> float:
    """
    Convert a stored timestamp to seconds since the epoch.

    Firestore returns timezone-aware datetimes; a missing (or still pending)
    timestamp counts as the epoch.
    """
    if value is None:
        return 0.0
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.timestamp()
    if isinstance(value, (int, float)):
        return float(value)
    return 0.0


def _isoformat(value) -> Optional[str]:
    if isinstance(value, datetime):
        return value.isoformat()
    return None


def status_rank(status: Optional[str]) -> int:
    """Sort rank of a status: available first, then reserved, everything else last."""
    value = (status or STATUS_AVAILABLE).lower()
    if value == STATUS_AVAILABLE:
        return 0
    if value == STATUS_RESERVED:
        return 1
    return 2


def status_transition_updates(previous: Optional[str], current: str, timestamp) -> dict:
    """
    Compute the transition timestamp fields for a status change.

    Entering ``reserved``/``adopted`` sets the matching ``*_at`` field to
    ``timestamp``; leaving it clears the field. No change yields no updates.

    Args:
        previous: Status stored before the edit (None is treated as available)
        current: Status being written
        timestamp: Value to store for a newly entered state

    Returns:
        dict: Partial document update
    """
    previous = previous or STATUS_AVAILABLE
    updates = {}
    if current == previous:
        return updates

    for state, field_name in ((STATUS_ADOPTED, "adopted_at"), (STATUS_RESERVED, "reserved_at")):
        if current == state:
            updates[field_name] = timestamp
        elif previous == state:
            updates[field_name] = None
    return updates


@dataclass
class Listing:
    """A single adoptable-animal posting."""
    id: str
    owner_uid: str
    title: str
    city: str
    description: str
    animal_type: Optional[str] = None
    breed: Optional[str] = None
    owner_name: Optional[str] = None
    name: Optional[str] = None
    sex: str = "unknown"
    age_years: Optional[float] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    status: str = STATUS_AVAILABLE
    photos: list = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    reserved_at: Optional[datetime] = None
    adopted_at: Optional[datetime] = None

    @classmethod
    def from_firestore_doc(cls, doc_id: str, data: dict) -> 'Listing':
        """Create from Firestore document."""
        photos = data.get("photos")
        return cls(
            id=doc_id,
            owner_uid=data.get("owner_uid", ""),
            owner_name=data.get("owner_name"),
            title=data.get("title", ""),
            animal_type=data.get("animal_type"),
            breed=data.get("breed"),
            name=data.get("name"),
            sex=data.get("sex") or "unknown",
            age_years=data.get("age_years"),
            city=(data.get("city") or "").strip(),
            description=data.get("description", ""),
            contact_email=data.get("contact_email"),
            contact_phone=data.get("contact_phone"),
            status=data.get("status") or STATUS_AVAILABLE,
            photos=[p for p in photos if p] if isinstance(photos, list) else [],
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
            reserved_at=data.get("reserved_at"),
            adopted_at=data.get("adopted_at"),
        )

    @property
    def cover_photo(self) -> Optional[str]:
        return self.photos[0] if self.photos else None

    @property
    def created_timestamp(self) -> float:
        return to_epoch_seconds(self.created_at)

    def is_owned_by(self, uid: Optional[str]) -> bool:
        return bool(uid) and uid == self.owner_uid

    def with_owner_name(self, owner_name: Optional[str]) -> 'Listing':
        return replace(self, owner_name=owner_name)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON response."""
        return {
            "id": self.id,
            "owner_uid": self.owner_uid,
            "owner_name": self.owner_name,
            "title": self.title,
            "animal_type": self.animal_type,
            "breed": self.breed,
            "name": self.name,
            "sex": self.sex,
            "age_years": self.age_years,
            "city": self.city,
            "description": self.description,
            "contact_email": self.contact_email,
            "contact_phone": self.contact_phone,
            "status": self.status,
            "photos": list(self.photos),
            "cover_photo": self.cover_photo,
            "created_at": _isoformat(self.created_at),
            "updated_at": _isoformat(self.updated_at),
            "reserved_at": _isoformat(self.reserved_at),
            "adopted_at": _isoformat(self.adopted_at),
        }


@dataclass(frozen=True)
class ListingForm:
    """
    Raw editable listing fields as typed by the user.

    Values stay strings until validation; ``age_years`` is the raw text of the
    age input, where an empty string means unspecified.
    """
    title: str = ""
    animal_type: str = "dog"
    breed: str = "Unknown"
    name: str = ""
    sex: str = "unknown"
    age_years: str = ""
    city: str = ""
    description: str = ""
    contact_email: str = ""
    contact_phone: str = ""
    status: str = STATUS_AVAILABLE

    @classmethod
    def from_mapping(cls, data, defaults: Optional['ListingForm'] = None) -> 'ListingForm':
        """Build a form from request data, falling back to ``defaults`` for absent keys."""
        base = defaults or cls()
        values = {}
        for name in cls.__dataclass_fields__:
            raw = data.get(name) if data is not None else None
            values[name] = getattr(base, name) if raw is None else str(raw)
        return cls(**values)

    @classmethod
    def from_listing(cls, listing: Listing) -> 'ListingForm':
        """Snapshot a stored listing into editable form state."""
        age = listing.age_years
        if age is None:
            age_text = ""
        elif float(age).is_integer():
            age_text = str(int(age))
        else:
            age_text = str(age)
        return cls(
            title=listing.title or "",
            animal_type=listing.animal_type or "",
            breed=listing.breed or "",
            name=listing.name or "",
            sex=listing.sex or "unknown",
            age_years=age_text,
            city=(listing.city or "").strip(),
            description=listing.description or "",
            contact_email=listing.contact_email or "",
            contact_phone=listing.contact_phone or "",
            status=listing.status or STATUS_AVAILABLE,
        )

    def to_firestore_fields(self, age_years: Optional[float]) -> dict:
        """
        Convert validated form values to the editable Firestore fields.

        Args:
            age_years: Already parsed age (None when unspecified)

        Returns:
            dict: Trimmed field values, empty optionals stored as None
        """
        return {
            "title": self.title.strip(),
            "animal_type": self.animal_type or None,
            "breed": self.breed or None,
            "name": self.name.strip() or None,
            "sex": self.sex,
            "age_years": age_years,
            "city": self.city.strip(),
            "description": self.description.strip(),
            "contact_email": self.contact_email.strip() or None,
            "contact_phone": self.contact_phone.strip() or None,
        }

    def to_dict(self) -> dict:
        return {name: getattr(self, name) for name in self.__dataclass_fields__}


def new_listing_document(owner_uid: str, owner_name: Optional[str], fields: dict,
                         photos: Optional[list] = None) -> dict:
    """
    Build the Firestore document for a freshly created listing.

    New listings always start available; ``photos`` are the references of
    images already uploaded for it.
    """
    from google.cloud import firestore as firestore_module

    document = dict(fields)
    document.update({
        "owner_uid": owner_uid,
        "owner_name": owner_name or None,
        "status": STATUS_AVAILABLE,
        "photos": list(photos or []),
        "created_at": firestore_module.SERVER_TIMESTAMP,
        "updated_at": firestore_module.SERVER_TIMESTAMP,
    })
    return document
