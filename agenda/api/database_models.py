"""SQLAlchemy database models for the durable backends."""
from datetime import datetime
import bcrypt
from sqlalchemy import Column, String, DateTime, Boolean, Integer, Float, JSON, Index
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def local_now():
    """Current local timestamp (the service runs in a single implicit zone)."""
    return datetime.now()


class ReservationRecord(Base):
    """Reservations table."""
    __tablename__ = "reservations"

    id = Column(String(32), primary_key=True)
    client_name = Column(String(100), nullable=False)
    client_phone = Column(String(30), nullable=False)
    client_email = Column(String(254), nullable=True)
    service_name = Column(String(100), nullable=False)
    professional_name = Column(String(100), nullable=False)
    start_at = Column(DateTime, nullable=False, index=True)
    status = Column(String(20), nullable=False, default="pending")
    created_at = Column(DateTime, default=local_now, nullable=False)
    wants_reminders = Column(Boolean, default=False, nullable=False)
    first_time_client = Column(Boolean, default=False, nullable=False)

    __table_args__ = (
        Index("ix_reservations_professional_start", "professional_name", "start_at"),
    )

    def __repr__(self):
        return f"<ReservationRecord(id={self.id}, start_at={self.start_at}, status={self.status})>"


class ScheduleRecord(Base):
    """Single-row table holding the weekly schedule."""
    __tablename__ = "schedule_settings"

    key = Column(String(50), primary_key=True, default="general")
    days = Column(JSON, nullable=False)  # {"0": DaySchedule dict, ...}
    slot_interval_minutes = Column(Integer, nullable=False)
    updated_at = Column(DateTime, default=local_now, onupdate=local_now, nullable=False)

    def __repr__(self):
        return f"<ScheduleRecord(key={self.key}, interval={self.slot_interval_minutes})>"


class ServiceRecord(Base):
    """Catalog services."""
    __tablename__ = "services"

    id = Column(String(100), primary_key=True)
    name = Column(String(100), nullable=False)
    description = Column(String(500), nullable=False, default="")
    duration_minutes = Column(Integer, nullable=False)
    price = Column(Float, nullable=False)

    def __repr__(self):
        return f"<ServiceRecord(id={self.id}, name={self.name})>"


class ProfessionalRecord(Base):
    """Catalog professionals."""
    __tablename__ = "professionals"

    id = Column(String(100), primary_key=True)
    name = Column(String(100), nullable=False)
    role = Column(String(100), nullable=False, default="")
    service_ids = Column(JSON, nullable=False, default=list)

    def __repr__(self):
        return f"<ProfessionalRecord(id={self.id}, name={self.name})>"


class AdminAccount(Base):
    """Administrators allowed into the panel (bcrypt password hashes)."""
    __tablename__ = "admin_accounts"

    email = Column(String(254), primary_key=True)
    password_hash = Column(String(255), nullable=False)
    capabilities = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=local_now, nullable=False)

    @staticmethod
    def hash_password(password: str) -> str:
        """Hash password using bcrypt."""
        return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()

    @staticmethod
    def verify_password(password: str, password_hash: str) -> bool:
        """Verify password against hash."""
        return bcrypt.checkpw(password.encode(), password_hash.encode())

    def __repr__(self):
        return f"<AdminAccount(email={self.email}, active={self.is_active})>"


class AdminSession(Base):
    """Admin session tokens with bcrypt hashing."""
    __tablename__ = "admin_sessions"

    # First 16 chars of the token for O(1) lookup
    token_prefix = Column(String(20), primary_key=True, index=True)
    token_hash = Column(String(255), nullable=False)
    email = Column(String(254), nullable=False, index=True)
    created_at = Column(DateTime, default=local_now, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    last_activity = Column(DateTime, default=local_now, nullable=False)

    @staticmethod
    def hash_token(token: str) -> str:
        """Hash session token using bcrypt."""
        return bcrypt.hashpw(token.encode(), bcrypt.gensalt()).decode()

    @staticmethod
    def verify_token(token: str, token_hash: str) -> bool:
        """Verify session token against hash."""
        return bcrypt.checkpw(token.encode(), token_hash.encode())

    @staticmethod
    def get_token_prefix(token: str) -> str:
        """Get first 16 chars for indexing."""
        return token[:16]

    def __repr__(self):
        return f"<AdminSession(prefix={self.token_prefix}, email={self.email})>"
