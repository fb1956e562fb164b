"""
Pydantic schemas for the values the client hands to its callers.
"""

from datetime import date, datetime, time
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from epatrol.errors import TeardownFailure
from epatrol.models.beat_assignment import AssignmentStatus


class DutyState(str, Enum):
    """Current shift mode of the signed-in officer."""
    OFF_DUTY = "off_duty"
    ON_DUTY = "on_duty"
    BREAK = "break"


class PermissionStatus(str, Enum):
    GRANTED = "granted"
    DENIED = "denied"


# Identity

class Principal(BaseModel):
    """The signed-in officer. Immutable for the lifetime of a session."""
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: UUID
    email: str
    rank: str
    full_name: str
    unit: str
    sub_unit: str


# Beat assignment

class Beat(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: UUID
    name: str
    center_lat: float
    center_lng: float
    radius_meters: int
    address: str
    unit: str
    sub_unit: str
    beat_status: str
    duty_start_time: Optional[time] = None
    duty_end_time: Optional[time] = None
    created_at: datetime


class Assignment(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: UUID
    personnel_id: UUID
    beat_id: UUID
    assigned_date: date
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    status: AssignmentStatus
    accepted_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class AssignedBeat(BaseModel):
    """The single beat assigned to the officer, with its assignment."""
    model_config = ConfigDict(frozen=True)

    beat: Beat
    assignment: Assignment


# Location

class Position(BaseModel):
    """One raw fix from the device position source."""
    model_config = ConfigDict(frozen=True)

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    accuracy: Optional[float] = Field(None, ge=0)
    speed: Optional[float] = None
    heading: Optional[float] = None
    timestamp: datetime


class LocationRecord(BaseModel):
    """The live row the dispatch dashboard reads for one officer."""
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: UUID
    personnel_id: UUID
    latitude: float
    longitude: float
    accuracy: Optional[float] = None
    speed: Optional[float] = None
    heading: Optional[float] = None
    updated_at: datetime


# Duty engine

class TransitionResult(BaseModel):
    """
    Outcome of a duty-state transition.

    `warning` is set when the transition completed locally but the
    server-side teardown did not.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    previous: DutyState
    state: DutyState
    warning: Optional[TeardownFailure] = None


class TrackingStats(BaseModel):
    """Counters for the reporting loop of one engine."""
    samples_synced: int = 0
    samples_failed: int = 0
    samples_discarded: int = 0
    last_synced_at: Optional[datetime] = None
    last_error: Optional[str] = None
