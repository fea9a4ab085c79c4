"""
SQLAlchemy ORM models  (maps to PostgreSQL).

Tables
------
* ``users``              -- admins, customers and drivers, tagged by ``role``
* ``cabs``               -- vehicles; ``driver_id`` links a cab to its driver
* ``trips``              -- one row per booking, foreign keys only
* ``account_tokens``     -- email-verification and password-reset tokens
* ``blacklisted_tokens`` -- JWTs revoked by logout

Indexes
-------
* **B-Tree** on ``trips.status``, ``customer_id``, ``driver_id``, ``cab_id``
  and ``from_date_time`` for the history and scheduler queries, and on
  ``users.role`` / ``cabs.is_available`` for dispatch.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)

from .database import Base
from src.domain.enums import Role, TokenPurpose, TripStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserModel(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    role = Column(Enum(Role), nullable=False)
    username = Column(String(80), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    address = Column(String(255), nullable=True)
    mobile_number = Column(String(20), nullable=True)
    email_verified = Column(Boolean, default=False, nullable=False)
    profile_photo = Column(String(255), nullable=True)

    # Admins
    name = Column(String(120), nullable=True)
    # Admins and drivers: approval by a verified admin
    verified = Column(Boolean, default=False, nullable=False)

    # Drivers
    licence_no = Column(String(40), unique=True, nullable=True)
    rating = Column(Float, default=0.0, nullable=False)
    total_ratings = Column(Integer, default=0, nullable=False)
    is_available = Column(Boolean, default=True, nullable=False)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        Index("idx_users_role", "role"),
        Index("idx_users_available", "role", "is_available"),
    )


class CabModel(Base):
    __tablename__ = "cabs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    driver_id = Column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), unique=True, nullable=True
    )
    car_type = Column(String(40), nullable=False)
    per_km_rate = Column(Float, nullable=False)
    number_plate = Column(String(20), unique=True, nullable=True)
    is_available = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        Index("idx_cabs_available", "is_available"),
        Index("idx_cabs_car_type", "car_type"),
    )


class TripModel(Base):
    __tablename__ = "trips"

    id = Column(Integer, primary_key=True, autoincrement=True)
    customer_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    driver_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    cab_id = Column(Integer, ForeignKey("cabs.id"), nullable=True)

    from_location = Column(String(255), nullable=False)
    to_location = Column(String(255), nullable=False)
    from_latitude = Column(Float, nullable=True)
    from_longitude = Column(Float, nullable=True)
    car_type = Column(String(40), nullable=True)

    scheduled_at = Column(DateTime(timezone=True), nullable=True)
    from_date_time = Column(DateTime(timezone=True), nullable=True)
    to_date_time = Column(DateTime(timezone=True), nullable=True)

    distance_in_km = Column(Float, nullable=True)
    bill = Column(Float, nullable=True)
    status = Column(Enum(TripStatus), default=TripStatus.SCHEDULED, nullable=False)
    customer_rating = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    __table_args__ = (
        Index("idx_trips_status", "status"),
        Index("idx_trips_customer", "customer_id"),
        Index("idx_trips_driver", "driver_id"),
        Index("idx_trips_cab", "cab_id"),
        Index("idx_trips_from_date_time", "from_date_time"),
    )


class AccountTokenModel(Base):
    __tablename__ = "account_tokens"

    id = Column(Integer, primary_key=True, autoincrement=True)
    token = Column(String(64), unique=True, nullable=False)
    purpose = Column(Enum(TokenPurpose), nullable=False)
    user_email = Column(String(255), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)


class BlacklistedTokenModel(Base):
    __tablename__ = "blacklisted_tokens"

    id = Column(Integer, primary_key=True, autoincrement=True)
    token = Column(Text, unique=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
