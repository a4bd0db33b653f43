"""
Authentication flow: sign-up, sign-in, sign-out and the auth-state listener
"""

import logging
from typing import Callable, Optional

from .backend.base import SERVER_TIMESTAMP, Backend, Identity
from .errors import BackendError, ValidationError
from .state import AppState
from .store import TaskStore

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


def display_name_for(identity: Identity, profile: Optional[dict]) -> str:
    """Profile name if there is one, otherwise the local part of the e-mail."""
    if profile and profile.get("name"):
        return profile["name"]
    return identity.email.split("@")[0]


def avatar_initial(name: str) -> str:
    return name[:1].upper()


class AuthSession:
    """Keeps the task store in step with who is signed in."""

    def __init__(self, backend: Backend, store: TaskStore, state: AppState,
                 users_collection: str = "users"):
        self.backend = backend
        self.store = store
        self.state = state
        self.users_collection = users_collection
        self._unsubscribe: Optional[Callable[[], None]] = None

    # ============================================================================
    # Auth-state listener
    # ============================================================================

    def start(self) -> None:
        """Begin following auth state; attaches the store if already signed in."""
        if self._unsubscribe is None:
            self._unsubscribe = self.backend.on_auth_state_change(self._on_auth_state)

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self.store.detach(clear=False)

    def _on_auth_state(self, identity: Optional[Identity]) -> None:
        if identity is not None:
            current = self.state.current_user
            if current is not None and current.uid == identity.uid and self.store.subscribed:
                return
            self.state.display_name = identity.email.split("@")[0]
            self.store.attach(identity)
        else:
            self.store.detach()
            self.state.current_user = None
            self.state.display_name = None

    async def load_profile(self) -> Optional[str]:
        """Resolve the display name of the signed-in user.

        Falls back to the e-mail local part when the profile is missing or
        cannot be read.
        """
        identity = self.state.current_user
        if identity is None:
            return None
        try:
            profile = await self.backend.get_once(self.users_collection, identity.uid)
        except BackendError as e:
            logger.error("Error getting user data: %s", e)
            profile = None
        self.state.display_name = display_name_for(identity, profile)
        return self.state.display_name

    # ============================================================================
    # Commands
    # ============================================================================

    async def sign_up(self, name: str, email: str, password: str, confirm_password: str) -> Identity:
        """Create an account and its profile, leaving nobody signed in."""
        name = (name or "").strip()
        email = (email or "").strip()
        if not name:
            raise ValidationError("Please enter your name", field_name="name")
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise ValidationError("Password must be at least 6 characters", field_name="password")
        if password != confirm_password:
            raise ValidationError("Passwords do not match", field_name="confirm_password")
        if not email or not password:
            raise ValidationError("Please fill all fields", field_name="email")

        identity = await self.backend.sign_up(email, password)
        try:
            await self.backend.set(self.users_collection, identity.uid, {
                "owner_id": identity.uid,
                "name": name,
                "email": identity.email,
                "created_at": SERVER_TIMESTAMP,
            })
        finally:
            if self.backend.current_identity is not None:
                await self.sign_out()
        return identity

    async def sign_in(self, email: str, password: str) -> Identity:
        email = (email or "").strip()
        if not email or not password:
            raise ValidationError("Please enter both email and password", field_name="email")
        try:
            identity = await self.backend.sign_in(email, password)
        except BackendError as e:
            logger.error("Error signing in: %s", e)
            raise BackendError("Invalid email or password", code=e.code)
        await self.load_profile()
        return identity

    async def sign_out(self) -> None:
        """Cancel the task subscription first, then sign out and clear the snapshot."""
        self.store.detach(clear=False)
        await self.backend.sign_out()
        self.state.current_user = None
        self.state.display_name = None
        self.state.clear()
