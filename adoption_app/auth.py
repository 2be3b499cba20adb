"""
Session-backed authentication provider.

Identities are kept in the signed Flask session; credentials (werkzeug
password hashes) live in the ``credentials`` Firestore collection keyed by a
hash of the normalized email address.
"""
import hashlib
import logging
import threading
import uuid
from dataclasses import dataclass, asdict, replace
from typing import Callable, Optional

from flask import session
from google.api_core.exceptions import AlreadyExists
from werkzeug.security import generate_password_hash, check_password_hash

from .config import CREDENTIALS_COLLECTION
from .exceptions import AuthenticationError, ServiceUnavailableError, ValidationError
from .utils.validators import validate_credentials
from . import gcp_clients

logger = logging.getLogger(__name__)

SESSION_KEY = "identity"


@dataclass(frozen=True)
class Identity:
    """The signed-in user as known to the auth provider."""
    uid: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    photo_url: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


class AuthProvider:
    """Registers, signs in and tracks the current identity."""

    def __init__(self, firestore_client=None):
        self.firestore = firestore_client or gcp_clients.firestore_client
        self._listeners = []
        self._lock = threading.Lock()

    def _credentials(self, email: str):
        if not self.firestore:
            raise ServiceUnavailableError("Firestore")
        key = hashlib.sha256(email.encode("utf-8")).hexdigest()
        return self.firestore.collection(CREDENTIALS_COLLECTION).document(key)

    def on_identity_changed(self, listener: Callable[[Optional[Identity]], None]) -> Callable[[], None]:
        """
        Register a listener called with the new identity (or None on sign-out).

        Returns:
            callable: Removes the listener
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)
        return unsubscribe

    def _emit(self, identity: Optional[Identity]):
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(identity)
            except Exception as e:
                logger.warning(f"Identity listener failed: {e}")

    def current_identity(self) -> Optional[Identity]:
        data = session.get(SESSION_KEY)
        if not data:
            return None
        return Identity(**data)

    def require_identity(self) -> Identity:
        identity = self.current_identity()
        if identity is None:
            raise AuthenticationError("Sign in required")
        return identity

    def begin_session(self, identity: Identity):
        session[SESSION_KEY] = identity.to_dict()
        self._emit(identity)

    def register(self, email: str, password: str, display_name: Optional[str] = None,
                 sign_in: bool = True) -> Identity:
        """
        Create credentials for a new user.

        Raises:
            ValidationError: If the credentials are malformed or the email is taken
        """
        email, password = validate_credentials(email, password)
        identity = Identity(uid=uuid.uuid4().hex, email=email,
                            display_name=(display_name or "").strip() or None)

        try:
            self._credentials(email).create({
                "uid": identity.uid,
                "email": email,
                "display_name": identity.display_name,
                "password_hash": generate_password_hash(password),
            })
        except AlreadyExists:
            raise ValidationError("email", "An account with this email already exists")

        logger.info(f"Registered user {identity.uid}")
        if sign_in:
            self.begin_session(identity)
        return identity

    def sign_in(self, email: str, password: str) -> Identity:
        """
        Verify credentials and start a session.

        Raises:
            AuthenticationError: If the email/password pair is wrong
        """
        email, password = validate_credentials(email, password)
        snapshot = self._credentials(email).get()
        data = snapshot.to_dict() if snapshot.exists else None
        if not data or not check_password_hash(data.get("password_hash", ""), password):
            logger.info("Rejected sign-in attempt")
            raise AuthenticationError("Invalid email or password")

        identity = Identity(
            uid=data["uid"],
            email=data.get("email", email),
            display_name=data.get("display_name"),
            photo_url=data.get("photo_url"),
        )
        self.begin_session(identity)
        return identity

    def sign_out(self):
        if session.pop(SESSION_KEY, None) is not None:
            self._emit(None)

    def update_profile(self, identity: Identity, **fields) -> Identity:
        """
        Update display name and/or avatar on the identity and its credentials.

        Args:
            identity: Current identity
            **fields: ``display_name`` and/or ``photo_url``

        Returns:
            Identity: The updated identity (also stored in the session)
        """
        allowed = {k: v for k, v in fields.items() if k in ("display_name", "photo_url")}
        updated = replace(identity, **allowed)
        if identity.email:
            self._credentials(identity.email).update(allowed)
        session[SESSION_KEY] = updated.to_dict()
        self._emit(updated)
        return updated
