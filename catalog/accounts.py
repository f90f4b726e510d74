"""User registration, password verification and admin checks."""
from typing import List, Optional
import logging

from catalog.errors import AuthRequiredError, ForbiddenError, NotFoundError, ValidationError
from catalog.models import User, Role

logger = logging.getLogger(__name__)


class AccountService:
    """Registers users and checks their credentials."""

    def __init__(self, db):
        self.db = db

    @staticmethod
    def _require_admin(store, username: Optional[str]) -> User:
        if username is None or not username.strip():
            raise AuthRequiredError("Authentication required")
        user = store.get_user_by_username(username)
        if user is None:
            raise NotFoundError(f"User not found: {username}")
        if not user.is_admin:
            raise ForbiddenError(f"User {username} is not an administrator")
        return user

    def register(
        self,
        username: str,
        email: Optional[str],
        password: str,
        role: Role = Role.USER,
        acting_username: Optional[str] = None,
    ) -> User:
        """
        Register a new user.

        Creating an ADMIN needs ``acting_username`` to be an existing admin,
        except for the very first admin of a fresh catalog.
        """
        username = (username or "").strip()
        if not username:
            raise ValidationError("Username is required")
        if not password:
            raise ValidationError("Password is required")

        with self.db.transaction() as store:
            if role == Role.ADMIN and store.has_admin():
                self._require_admin(store, acting_username)
            if store.get_user_by_username(username) is not None:
                raise ValidationError("Username already exists")
            user = User(
                username=username,
                email=(email or "").strip() or None,
                password_hash="",
                role=role,
            )
            user.set_password(password)
            user = store.insert_user(user)

        logger.info(f"Registered user {user.username} ({user.role.value})")
        return user

    def authenticate(self, username: str, password: str) -> bool:
        if not username or password is None:
            return False
        with self.db.transaction(read_only=True) as store:
            user = store.get_user_by_username(username)
        if user is None or not user.check_password(password):
            logger.info(f"Failed login for {username!r}")
            return False
        return True

    def list_users(self, acting_username: Optional[str]) -> List[User]:
        """All users, for an authenticated admin only."""
        with self.db.transaction(read_only=True) as store:
            self._require_admin(store, acting_username)
            return store.list_users()
