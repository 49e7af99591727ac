from datetime import timedelta
from typing import Optional

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt
from sqlmodel import Session, select

import config
from database.models import User, utcnow
from utils.logger import get_logger

logger = get_logger(__name__)

ROLES = ("admin", "staff")


class AuthError(Exception):
    pass


class DuplicateUsernameError(AuthError):
    pass


class InvalidCredentialsError(AuthError):
    pass


class TokenError(AuthError):
    pass


class AuthService:
    @staticmethod
    def get_password_hash(password: str) -> str:
        return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=config.BCRYPT_ROUNDS)).decode("utf-8")

    @staticmethod
    def verify_password(password: str, password_hash: str) -> bool:
        try:
            return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
        except ValueError:
            # Malformed stored hash
            return False

    # --- Tokens ---

    @staticmethod
    def create_access_token(user: User, expires_delta: Optional[timedelta] = None) -> str:
        expire = utcnow() + (expires_delta or timedelta(minutes=config.TOKEN_EXPIRE_MINUTES))
        payload = {"sub": user.id, "username": user.username, "role": user.role, "exp": expire}
        return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)

    @staticmethod
    def decode_token(token: str) -> dict:
        """
        Verify signature and expiry of a bearer token and return its claims.
        Raises TokenError for anything that is not a valid, unexpired token.
        """
        try:
            payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
        except ExpiredSignatureError as e:
            raise TokenError("Token expired") from e
        except JWTError as e:
            raise TokenError("Invalid token") from e
        if not payload.get("sub"):
            raise TokenError("Invalid token")
        return payload

    # --- Users ---

    @staticmethod
    def register_user(session: Session, username: str, password: str, role: str = "staff") -> User:
        if role not in ROLES:
            raise ValueError(f"Unknown role {role}")
        existing = session.exec(select(User).where(User.username == username)).first()
        if existing:
            raise DuplicateUsernameError("username exists")

        user = User(username=username, password_hash=AuthService.get_password_hash(password), role=role)
        session.add(user)
        session.commit()
        session.refresh(user)
        logger.info(f"Registered user {user.username} ({user.role})")
        return user

    @staticmethod
    def authenticate(session: Session, username: str, password: str) -> User:
        user = session.exec(select(User).where(User.username == username)).first()
        if not user or not AuthService.verify_password(password, user.password_hash):
            logger.warning(f"Failed login for username={username}")
            raise InvalidCredentialsError("Invalid credentials")
        logger.info(f"User {user.username} logged in")
        return user

    @staticmethod
    def create_default_admin(session: Session) -> Optional[User]:
        """Seed an admin account when the users table is empty."""
        if session.exec(select(User)).first():
            return None
        admin = User(
            username=config.DEFAULT_ADMIN_USERNAME,
            password_hash=AuthService.get_password_hash(config.DEFAULT_ADMIN_PASSWORD),
            role="admin",
        )
        session.add(admin)
        session.commit()
        session.refresh(admin)
        logger.warning(
            f"Default admin created -> username: {admin.username} (change the password)"
        )
        return admin
