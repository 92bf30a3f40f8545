"""Admin authentication: accounts, session tokens and capabilities."""
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import FrozenSet, Iterable, Optional
from sqlalchemy.engine import Engine

from agenda import config
from agenda.api.database_models import AdminAccount, AdminSession
from agenda.database import create_db_engine, make_session_factory

CAP_REVIEW_RESERVATIONS = "reservations:review"
CAP_WRITE_SCHEDULE = "schedule:write"
CAP_WRITE_CATALOG = "catalog:write"

ALL_CAPABILITIES = frozenset({
    CAP_REVIEW_RESERVATIONS,
    CAP_WRITE_SCHEDULE,
    CAP_WRITE_CATALOG,
})

MIN_PASSWORD_LENGTH = 8


class InvalidCredentialsError(Exception):
    """Raised when e-mail/password do not match an active administrator."""
    pass


class InvalidSessionError(Exception):
    """Raised when a session token is unknown or expired."""
    pass


class PermissionDeniedError(Exception):
    """Raised when a session lacks the capability an action needs."""
    pass


@dataclass(frozen=True)
class AdminPrincipal:
    """Authenticated administrator and what they may do."""
    email: str
    capabilities: FrozenSet[str]

    def can(self, capability: str) -> bool:
        return capability in self.capabilities

    def require(self, capability: str) -> None:
        """Raises PermissionDeniedError unless ``capability`` is granted."""
        if not self.can(capability):
            raise PermissionDeniedError(f"Missing capability: {capability}")


class AdminAuthManager:
    """
    Manages administrator accounts and login sessions.

    Pattern: bcrypt-hashed passwords and session tokens + prefix indexing.
    Performance: O(1) token lookup using the prefix, then bcrypt verification.
    Tokens are shown in plain text ONCE, when the session is created.
    """

    def __init__(
        self,
        database_url: Optional[str] = None,
        engine: Optional[Engine] = None,
        session_ttl: Optional[timedelta] = None
    ):
        """
        Initialize with database connection.

        Args:
            database_url: SQLAlchemy connection string (ignored if engine given)
            engine: Existing engine to share
            session_ttl: Session lifetime (defaults to ADMIN_SESSION_TTL_HOURS)
        """
        if engine is None:
            engine = create_db_engine(database_url or config.DATABASE_URL)
        self.engine = engine
        self.SessionLocal = make_session_factory(engine)
        self.session_ttl = session_ttl or timedelta(hours=config.ADMIN_SESSION_TTL_HOURS)

    def create_admin(
        self,
        email: str,
        password: str,
        capabilities: Optional[Iterable[str]] = None
    ) -> None:
        """
        Register a new administrator.

        Args:
            email: Login e-mail (case-insensitive)
            password: Plain password, stored only as a bcrypt hash
            capabilities: Granted capabilities (defaults to all)

        Raises:
            ValueError: If the e-mail is taken, the password is too short or
                a capability is unknown
        """
        email = email.strip().lower()
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValueError(f"Password must have at least {MIN_PASSWORD_LENGTH} characters")

        granted = set(capabilities) if capabilities is not None else set(ALL_CAPABILITIES)
        unknown = granted - ALL_CAPABILITIES
        if unknown:
            raise ValueError(f"Unknown capabilities: {sorted(unknown)}")

        with self.SessionLocal() as db:
            if db.get(AdminAccount, email) is not None:
                raise ValueError(f"Administrator {email} already exists")
            db.add(AdminAccount(
                email=email,
                password_hash=AdminAccount.hash_password(password),
                capabilities=sorted(granted),
                is_active=True,
                created_at=datetime.now()
            ))
            db.commit()

    def login(self, email: str, password: str) -> str:
        """
        Check credentials and open a session.

        WARNING: Returns the token in plain text ONCE.

        Returns:
            Session token in format: as_<uuid>

        Raises:
            InvalidCredentialsError: If the credentials do not match
        """
        email = email.strip().lower()

        with self.SessionLocal() as db:
            account = db.get(AdminAccount, email)
            if account is None or not account.is_active:
                raise InvalidCredentialsError("Invalid credentials")
            if not AdminAccount.verify_password(password, account.password_hash):
                raise InvalidCredentialsError("Invalid credentials")

            token = f"as_{uuid.uuid4().hex}"
            now = datetime.now()
            db.add(AdminSession(
                token_prefix=AdminSession.get_token_prefix(token),
                token_hash=AdminSession.hash_token(token),
                email=email,
                created_at=now,
                expires_at=now + self.session_ttl,
                last_activity=now
            ))
            db.commit()

        # Return plain text token (ONLY TIME IT'S VISIBLE)
        return token

    def authenticate(self, token: str) -> AdminPrincipal:
        """
        Resolve a session token to its administrator.

        Updates last_activity on success.

        Raises:
            InvalidSessionError: If the token is unknown, expired, or its
                account was deactivated
        """
        token_prefix = AdminSession.get_token_prefix(token or "")

        with self.SessionLocal() as db:
            session = db.get(AdminSession, token_prefix)
            if session is None or not AdminSession.verify_token(token, session.token_hash):
                raise InvalidSessionError("Invalid or expired session")

            now = datetime.now()
            if session.expires_at <= now:
                db.delete(session)
                db.commit()
                raise InvalidSessionError("Invalid or expired session")

            account = db.get(AdminAccount, session.email)
            if account is None or not account.is_active:
                raise InvalidSessionError("Invalid or expired session")

            session.last_activity = now
            db.commit()

            return AdminPrincipal(
                email=account.email,
                capabilities=frozenset(account.capabilities or [])
            )

    def logout(self, token: str) -> None:
        """End a session. Unknown tokens are ignored."""
        token_prefix = AdminSession.get_token_prefix(token or "")

        with self.SessionLocal() as db:
            session = db.get(AdminSession, token_prefix)
            if session is not None and AdminSession.verify_token(token, session.token_hash):
                db.delete(session)
                db.commit()

    def deactivate_admin(self, email: str) -> None:
        """
        Block an administrator (soft delete). Open sessions stop working.

        Raises:
            ValueError: If the administrator does not exist
        """
        email = email.strip().lower()

        with self.SessionLocal() as db:
            account = db.get(AdminAccount, email)
            if account is None:
                raise ValueError(f"Administrator {email} not found")
            account.is_active = False
            db.commit()

    def cleanup_expired_sessions(self, now: Optional[datetime] = None) -> int:
        """
        Delete sessions past their expiry.

        Returns:
            Number of deleted sessions
        """
        cutoff = now or datetime.now()

        with self.SessionLocal() as db:
            deleted = db.query(AdminSession).filter(
                AdminSession.expires_at <= cutoff
            ).delete()
            db.commit()

        return deleted
