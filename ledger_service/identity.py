"""
Identity provider: account registration, login and bearer tokens.

Accounts created here are the rows the ledger references. The ledger itself
never writes the users table.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import select

from .config import Settings
from .db import Database
from .errors import AuthError, ConflictError, StorageError, ValidationError
from .logging_config import get_logger
from .models import User, utcnow

logger = get_logger("identity")

ALGO = "HS256"
MIN_PASSWORD_LENGTH = 8

pwd = CryptContext(schemes=["bcrypt"], deprecated="auto")


class IdentityProvider:
    def __init__(self, db: Database, settings: Settings) -> None:
        self._db = db
        self._secret = settings.jwt_secret
        self._token_ttl = timedelta(minutes=settings.access_token_expire_minutes)

    def create_token(self, user_id: uuid.UUID) -> str:
        exp = datetime.now(timezone.utc) + self._token_ttl
        return jwt.encode({"sub": str(user_id), "exp": exp}, self._secret, algorithm=ALGO)

    def subject_from_header(self, auth: Optional[str]) -> uuid.UUID:
        """Resolve an ``Authorization: Bearer <token>`` header to an account id."""
        if not auth or not auth.lower().startswith("bearer "):
            raise AuthError("Missing token")
        token = auth.split(" ", 1)[1]
        try:
            return uuid.UUID(jwt.decode(token, self._secret, algorithms=[ALGO])["sub"])
        except (JWTError, KeyError, ValueError):
            raise AuthError("Invalid token")

    def register(self, email: str, password: str, name: str) -> Tuple[User, str]:
        email = email.strip()
        if "@" not in email:
            raise ValidationError("Invalid email format", details={"email": email})
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
            )

        user = User(email=email, password_hash=pwd.hash(password), name=name)
        with self._db.session() as session:
            try:
                existing = session.exec(select(User.id).where(User.email == email)).first()
                if existing is not None:
                    raise ConflictError("User already exists", details={"email": email})
                session.add(user)
                session.commit()
                session.refresh(user)
            except IntegrityError as exc:
                session.rollback()
                raise ConflictError("User already exists", details={"email": email}) from exc
            except SQLAlchemyError as exc:
                session.rollback()
                logger.error("Failed to create user: %s", exc)
                raise StorageError("Failed to create user") from exc

        logger.info("Registered user %s (%s)", user.id, user.email)
        return user, self.create_token(user.id)

    def authenticate(self, email: str, password: str) -> Tuple[User, str]:
        try:
            with self._db.session() as session:
                user = session.exec(select(User).where(User.email == email.strip())).first()
        except SQLAlchemyError as exc:
            logger.error("Failed to look up user: %s", exc)
            raise StorageError("Failed to look up user") from exc

        if user is None or not pwd.verify(password, user.password_hash):
            raise AuthError("Invalid credentials")
        return user, self.create_token(user.id)

    def get_user(self, user_id: uuid.UUID) -> User:
        try:
            with self._db.session() as session:
                user = session.get(User, user_id)
        except SQLAlchemyError as exc:
            logger.error("Failed to look up user: %s", exc)
            raise StorageError("Failed to look up user") from exc
        if user is None:
            raise AuthError("Invalid token")
        return user

    def update_profile(self, user_id: uuid.UUID, name: str) -> User:
        """Rename an account. Only the display name is editable."""
        name = name.strip()
        if not name:
            raise ValidationError("Name must not be empty")

        with self._db.session() as session:
            try:
                user = session.get(User, user_id)
                if user is None:
                    raise AuthError("Invalid token")
                user.name = name
                user.updated_at = utcnow()
                session.add(user)
                session.commit()
                session.refresh(user)
            except SQLAlchemyError as exc:
                session.rollback()
                logger.error("Failed to update user: %s", exc)
                raise StorageError("Failed to update user") from exc

        logger.info("Updated profile of user %s", user.id)
        return user
