"""
Data models package for the office assignment engine.

This package exports the three groups of records the engine works with:
1. Supply (Office, ClinicianProfile, AssignmentRule, ClientPreference)
2. Demand (SchedulingRequest, AppointmentRecord)
3. Output (SchedulingResult, SchedulingConflict, DailyScheduleSummary)
"""

from .base import (
    CamelModel,
    OfficeId,
    ensure_aware
)

from .office import (
    Office,
    OfficeSize,
    OverrideLevel,
    RuleType,
    ClinicianProfile,
    AssignmentRule,
    ClientPreference
)

from .scheduling import (
    SessionType,
    AppointmentStatus,
    AppointmentSource,
    ResolutionType,
    Requirements,
    SchedulingRequest,
    ConflictResolution,
    SchedulingConflict,
    SchedulingResult,
    AppointmentRecord
)

from .summary import (
    Alert,
    AlertSeverity,
    AlertType,
    OfficeUtilization,
    DailyScheduleSummary
)

__all__ = [
    # --- Shared ---
    "CamelModel",
    "OfficeId",
    "ensure_aware",

    # --- Supply Models ---
    "Office",
    "OfficeSize",
    "OverrideLevel",
    "RuleType",
    "ClinicianProfile",
    "AssignmentRule",
    "ClientPreference",

    # --- Demand Models ---
    "SessionType",
    "AppointmentStatus",
    "AppointmentSource",
    "Requirements",
    "SchedulingRequest",
    "AppointmentRecord",

    # --- Output Models ---
    "ResolutionType",
    "ConflictResolution",
    "SchedulingConflict",
    "SchedulingResult",
    "Alert",
    "AlertSeverity",
    "AlertType",
    "OfficeUtilization",
    "DailyScheduleSummary",
]
