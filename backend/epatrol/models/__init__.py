# Database models
from epatrol.models.auth_user import AuthUser
from epatrol.models.personnel import Personnel
from epatrol.models.beat import Beat
from epatrol.models.beat_assignment import AssignmentStatus, BeatAssignment
from epatrol.models.personnel_location import PersonnelLocation

__all__ = [
    "AuthUser",
    "Personnel",
    "Beat",
    "AssignmentStatus",
    "BeatAssignment",
    "PersonnelLocation",
]
