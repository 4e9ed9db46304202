"""
Users Service

Registration, password checks and account lookups.
"""
import logging
import re
import bcrypt
from typing import Optional
from uuid import UUID

from ..models.user import User
from ..security.sanitize import check_password_strength, is_valid_email
from ..storage.base import DuplicateError
from ..storage.user_storage import UserStorage
from .errors import ConflictError

logger = logging.getLogger("studio.services.users")


class UsersService:
    """Service for user management"""

    def __init__(self, user_storage: UserStorage, salt_rounds: int = 12):
        self.user_storage = user_storage
        self.salt_rounds = salt_rounds

    async def register(
        self,
        email: str,
        username: str,
        display_name: str,
        password: str,
    ) -> User:
        """
        Create a new user.

        Raises:
            ValueError: Invalid email, username or weak password
            ConflictError: Email or username already taken
        """
        email = email.lower().strip()
        username = username.lower().strip()
        display_name = display_name.strip()

        if not is_valid_email(email):
            raise ValueError("Invalid email format")
        if not self._is_valid_username(username):
            raise ValueError("Username must be 3-30 characters: letters, numbers and underscores")
        if not display_name or len(display_name) > 50:
            raise ValueError("Display name must be 1-50 characters")

        errors = check_password_strength(password)
        if errors:
            raise ValueError(". ".join(errors))

        if await self.user_storage.exists_by_email(email):
            raise ConflictError("An account with this email already exists")
        if await self.user_storage.exists_by_username(username):
            raise ConflictError("Username is already taken")

        user = User(
            email=email,
            username=username,
            display_name=display_name,
            password_hash=self._hash_password(password),
        )

        try:
            created = await self.user_storage.create(user)
        except DuplicateError as e:
            raise ConflictError("An account with this email or username already exists") from e

        logger.info(f"Created user: {created.display_name} (@{created.username})")
        return created

    async def authenticate(self, email: str, password: str) -> Optional[User]:
        """Return the active user matching the credentials, else None"""
        user = await self.user_storage.get_by_email(email.lower().strip())
        if not user or not user.password_hash or not user.is_active:
            return None
        if not self._check_password(password, user.password_hash):
            return None
        await self.user_storage.update_last_seen(user.id)
        return user

    async def get_user(self, user_id: UUID) -> Optional[User]:
        return await self.user_storage.get_by_id(user_id)

    def _hash_password(self, password: str) -> str:
        """Hash password using bcrypt"""
        salt = bcrypt.gensalt(rounds=self.salt_rounds)
        return bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')

    def _check_password(self, password: str, password_hash: str) -> bool:
        """Verify password against hash"""
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))

    def _is_valid_username(self, username: str) -> bool:
        """Validate username format (alphanumeric + underscores, 3-30 chars)"""
        return bool(re.match(r'^[a-z0-9_]{3,30}$', username))
