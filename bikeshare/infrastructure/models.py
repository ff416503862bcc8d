"""
SQLAlchemy ORM models  (maps to PostgreSQL + PostGIS).

Tables
------
* ``stations``      -- docking stations; bike counts are NOT stored here,
  they are derived from ``bikes.current_station_id`` at load time
* ``bikes``         -- fleet, each docked at one station or out on a ride
* ``reservations``  -- archive of ENDED / CANCELLED reservations with the
  upfront estimate and the settlement breakdown

Indexes
-------
* **GIST** on ``stations.location`` for nearby-station queries.
* **B-Tree** on ``bikes.current_station_id``, ``reservations.user_id`` and
  ``reservations.end_time`` for inventory loading and history pages.
"""

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
    func,
)
from geoalchemy2 import Geometry

from .database import Base
from bikeshare.domain.enums import BikeType, ReservationStatus


class StationModel(Base):
    __tablename__ = "stations"

    id = Column(String(64), primary_key=True)
    name = Column(String(120), nullable=False)
    address = Column(String(255), nullable=True)
    image_url = Column(String(512), nullable=True)

    # Stored as PostGIS geometry for spatial indexing
    location = Column(Geometry("POINT", srid=4326), nullable=False)

    # Also stored as plain floats for fast reads (avoids ST_X / ST_Y)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)

    capacity = Column(Integer, nullable=False)
    is_operational = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_stations_location", "location", postgresql_using="gist"),
    )


class BikeModel(Base):
    __tablename__ = "bikes"

    id = Column(String(64), primary_key=True)
    bike_number = Column(String(32), unique=True, nullable=False)
    type = Column(Enum(BikeType), default=BikeType.STANDARD, nullable=False)
    battery_level = Column(Integer, nullable=True)  # ELECTRIC only
    model_name = Column(String(120), nullable=True)
    current_station_id = Column(String(64), ForeignKey("stations.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (Index("idx_bikes_station", "current_station_id"),)


class ReservationModel(Base):
    __tablename__ = "reservations"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(64), nullable=False)
    bike_id = Column(String(64), nullable=False)
    bike_type = Column(Enum(BikeType), nullable=False)
    plan_name = Column(String(20), nullable=False)
    is_premium_user = Column(Boolean, default=False, nullable=False)

    start_station_id = Column(String(64), ForeignKey("stations.id"), nullable=False)
    end_station_id = Column(String(64), ForeignKey("stations.id"), nullable=True)

    reservation_time = Column(DateTime(timezone=True), nullable=False)
    start_time = Column(DateTime(timezone=True), nullable=True)
    end_time = Column(DateTime(timezone=True), nullable=True)
    duration_minutes = Column(Integer, nullable=False)
    actual_minutes = Column(Float, nullable=True)

    status = Column(Enum(ReservationStatus), nullable=False)
    overdue = Column(Boolean, default=False, nullable=False)

    # Upfront estimate shown to the rider
    estimate_base_rate = Column(Float, nullable=False)
    estimate_minutes_cost = Column(Float, nullable=False)
    estimate_discount = Column(Float, nullable=False)
    estimate_total_cost = Column(Float, nullable=False)

    # Settlement (authoritative)
    base_rate = Column(Float, nullable=True)
    minutes_cost = Column(Float, nullable=True)
    discount = Column(Float, nullable=True)
    total_cost = Column(Float, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_reservations_user", "user_id"),
        Index("idx_reservations_end_time", "end_time"),
    )
