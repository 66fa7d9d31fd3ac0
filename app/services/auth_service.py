# ================================
# AUTH SERVICE (services/auth_service.py)
# ================================

from sqlalchemy.orm import Session
from sqlalchemy import or_
from datetime import datetime, timezone
import logging

from app.models.user import User
from app.core.security import verify_password, get_password_hash, create_access_token
from app.schemas.auth import RegisterRequest
from app.core.exceptions import AppException, AuthenticationError
from app.config import settings

logger = logging.getLogger(__name__)

class AuthService:

    @staticmethod
    def register_user(db: Session, user_data: RegisterRequest) -> User:
        """Creates a new local user account"""
        existing_user = db.query(User).filter(
            or_(User.email == user_data.email, User.username == user_data.username)
        ).first()
        if existing_user:
            if existing_user.email == user_data.email:
                raise AppException("Email already registered", 400, "EMAIL_EXISTS")
            raise AppException("Username already taken", 400, "USERNAME_EXISTS")

        user = User(
            username=user_data.username,
            email=user_data.email,
            password_hash=get_password_hash(user_data.password),
            is_active=True
        )
        db.add(user)
        db.flush()

        logger.info(f"User registered: {user.username} ({user.id})")
        return user

    @staticmethod
    def authenticate_user(db: Session, email: str, password: str) -> tuple[User, dict]:
        """Checks credentials and issues an access token - same message for every failure"""
        GENERIC_ERROR_MESSAGE = "Invalid email or password"

        user = db.query(User).filter(User.email == email.lower()).first()

        if not user or not verify_password(password, user.password_hash):
            logger.warning(f"Failed login attempt for {email}")
            raise AuthenticationError(GENERIC_ERROR_MESSAGE, "INVALID_CREDENTIALS")

        if not user.is_active:
            raise AuthenticationError("User account is deactivated", "USER_INACTIVE")

        user.last_login_at = datetime.now(timezone.utc)
        db.flush()

        tokens = AuthService.create_tokens(user)
        logger.info(f"User logged in: {user.username}")
        return user, tokens

    @staticmethod
    def create_tokens(user: User) -> dict:
        access_token = create_access_token({"sub": str(user.id), "username": user.username})
        return {
            "access_token": access_token,
            "token_type": "bearer",
            "expires_in": settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60
        }

    @staticmethod
    def ensure_admin_user(db: Session, email: str, username: str, password: str) -> User:
        """Creates the initial admin account unless it already exists"""
        email = email.lower()
        user = db.query(User).filter(User.email == email).first()
        if user:
            logger.info(f"Admin user already exists: {email}")
            return user

        user = User(
            username=username,
            email=email,
            password_hash=get_password_hash(password),
            is_active=True
        )
        db.add(user)
        db.flush()
        logger.info(f"Admin user created: {email}")
        return user
