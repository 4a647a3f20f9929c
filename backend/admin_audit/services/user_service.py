"""User service - handles account management and authentication"""

from sqlalchemy.orm import Session
from typing import Optional
from datetime import datetime
from admin_audit.config import settings
from admin_audit.models.user import User
from admin_audit.schemas.audit import AuditAction
from admin_audit.schemas.user import UserCreate, UserRole
from admin_audit.core.security import get_password_hash, verify_password
from admin_audit.core.exceptions import (
    InvalidCredentialsError,
    DuplicateEmailError,
)
from admin_audit.services.audit_service import AuditActor, audit_service
import logging

logger = logging.getLogger(__name__)


class UserService:
    """Service for account management"""

    @staticmethod
    def create_user(
        db: Session,
        actor: Optional[AuditActor],
        user_data: UserCreate,
        role: UserRole = UserRole.USER
    ) -> User:
        """
        Create new account

        Args:
            db: Database session
            actor: Who is creating the account (None skips auditing)
            user_data: Account creation data
            role: Initial role; only regular users and super admins are created here

        Returns:
            Created user
        """
        existing = db.query(User).filter(User.email == user_data.email).first()
        if existing:
            raise DuplicateEmailError(user_data.email)

        user = User(
            email=user_data.email,
            full_name=user_data.full_name,
            password_hash=get_password_hash(user_data.password) if user_data.password else None,
            role=role.value,
            country=user_data.country,
            city=user_data.city,
            district=user_data.district,
        )

        db.add(user)
        db.commit()
        db.refresh(user)

        logger.info(f"Created user: {user.email} (role: {user.role})")
        audit_service.log_user_action(db, actor, AuditAction.USER_CREATED, user.id, {
            "user_name": user.full_name,
            "user_email": user.email,
            "user_role": user.role,
            "created_by": actor.name if actor else None,
        })
        return user

    @staticmethod
    def authenticate_user(
        db: Session,
        email: str,
        password: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None
    ) -> User:
        """
        Authenticate account by email and password

        A wrong password on an existing account is audited as
        ``failed_login`` attributed to that account; unknown emails are not
        audited.

        Args:
            db: Database session
            email: Account email
            password: Password
            ip_address: Client address for auditing
            user_agent: Client user agent for auditing

        Returns:
            Authenticated user
        """
        email = email.strip().lower()
        user = db.query(User).filter(User.email == email).first()

        if not user:
            raise InvalidCredentialsError()

        if not user.password_hash or not verify_password(password, user.password_hash):
            logger.warning(f"Failed login for {email}")
            audit_service.log_security_event(
                db,
                AuditActor.from_user(user, ip_address, user_agent),
                AuditAction.FAILED_LOGIN,
                {"email": email, "reason": "invalid_password"},
            )
            raise InvalidCredentialsError()

        logger.info(f"User authenticated: {email}")
        return user

    @staticmethod
    def record_login(db: Session, user: User) -> User:
        """Stamp last_login once the login has cleared the suspension gate"""
        user.last_login = datetime.utcnow()
        db.commit()
        db.refresh(user)
        return user

    @staticmethod
    def get_user_by_id(db: Session, user_id: int) -> Optional[User]:
        """Get user by ID"""
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def get_user_by_email(db: Session, email: str) -> Optional[User]:
        """Get user by email"""
        return db.query(User).filter(User.email == email.strip().lower()).first()

    @staticmethod
    def ensure_super_admin(db: Session) -> User:
        """
        Make sure the configured super admin account exists

        Args:
            db: Database session

        Returns:
            The super admin account
        """
        user = UserService.get_user_by_email(db, settings.SUPER_ADMIN_EMAIL)
        if user is None:
            return UserService.create_user(
                db,
                None,
                UserCreate(
                    email=settings.SUPER_ADMIN_EMAIL,
                    full_name=settings.SUPER_ADMIN_NAME,
                    password=settings.SUPER_ADMIN_PASSWORD,
                ),
                role=UserRole.SUPER_ADMIN,
            )

        if user.role != UserRole.SUPER_ADMIN.value:
            user.role = UserRole.SUPER_ADMIN.value
            user.admin_assigned_location = None
            db.commit()
            logger.info(f"Restored super admin role for {user.email}")
        return user


# Singleton instance
user_service = UserService()
