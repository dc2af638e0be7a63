from __future__ import annotations

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, ForeignKey, Index, Integer, String, Text

from common_core.db import Base


class User(Base):
    __tablename__ = "users"
    id = Column(String(64), primary_key=True)
    full_name = Column(String(128), nullable=True)
    pin_hash = Column(String(128), nullable=False)
    roles = Column(String(256), nullable=False)  # admin, substation_admin, end_user
    assigned_station_id = Column(Integer, ForeignKey("fire_stations.station_id"), nullable=True)


class Station(Base):
    __tablename__ = "fire_stations"
    station_id = Column(Integer, primary_key=True, autoincrement=True)
    station_name = Column(String(128), nullable=False)
    station_type = Column(String(16), nullable=False, index=True)  # Main, Substation
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    province = Column(String(128), nullable=True)
    city = Column(String(128), nullable=True)
    contact_number = Column(String(32), nullable=True)
    # derived from the latest ReadinessSubmission; written only by the readiness registry
    is_ready = Column(Boolean, nullable=False, default=False, index=True)
    last_status_update = Column(DateTime, nullable=True)
    created_at_utc = Column(DateTime, nullable=False)


class ReadinessSubmission(Base):
    __tablename__ = "station_readiness"
    readiness_id = Column(Integer, primary_key=True, autoincrement=True)
    station_id = Column(Integer, ForeignKey("fire_stations.station_id"), nullable=False)
    submitted_by_user_id = Column(String(64), nullable=False)
    status = Column(String(24), nullable=False)  # READY, PARTIALLY_READY, NOT_READY
    readiness_percentage = Column(Integer, nullable=False)
    equipment_checklist = Column(JSON, nullable=False, default=dict)
    submitted_at = Column(DateTime, nullable=False)

    __table_args__ = (Index("ix_station_readiness_station_submitted", "station_id", "submitted_at"),)


class Incident(Base):
    __tablename__ = "alarms"
    alarm_id = Column(Integer, primary_key=True, autoincrement=True)
    end_user_id = Column(String(64), nullable=True, index=True)
    caller_phone = Column(String(32), nullable=True)
    incident_type = Column(String(128), nullable=True)
    location_text = Column(String(512), nullable=True)
    narrative = Column(Text, nullable=True)
    user_latitude = Column(Float, nullable=False)
    user_longitude = Column(Float, nullable=False)
    initial_alarm_level = Column(String(32), nullable=False)
    current_alarm_level = Column(String(32), nullable=False)
    status = Column(String(32), nullable=False, index=True, default="Pending Dispatch")
    call_time = Column(DateTime, nullable=False, index=True)
    dispatch_time = Column(DateTime, nullable=True)
    resolve_time = Column(DateTime, nullable=True)
    dispatched_station_id = Column(
        Integer, ForeignKey("fire_stations.station_id"), nullable=False, index=True
    )
    dispatched_truck_id = Column(Integer, nullable=True)
    dispatch_distance_km = Column(Float, nullable=True)


class ResponseLogEntry(Base):
    __tablename__ = "alarm_response_log"
    log_id = Column(Integer, primary_key=True, autoincrement=True)
    alarm_id = Column(Integer, ForeignKey("alarms.alarm_id"), nullable=False, index=True)
    action_type = Column(String(64), nullable=False)
    details = Column(String(1024), nullable=True)
    performed_by_user_id = Column(String(64), nullable=True)  # None for system / anonymous callers
    action_timestamp = Column(DateTime, nullable=False)


class AuditLog(Base):
    __tablename__ = "audit_log"
    id = Column(Integer, primary_key=True, autoincrement=True)
    actor_user_id = Column(String(64), nullable=True, index=True)
    action = Column(String(64), nullable=False, index=True)
    entity_type = Column(String(32), nullable=False, index=True)
    entity_id = Column(String(64), nullable=False, index=True)
    request_id = Column(String(64), nullable=True, index=True)
    details_json = Column(JSON, nullable=False)
    created_at_utc = Column(DateTime, nullable=False, index=True)
