"""
Supply-side data models: offices, clinicians, assignment rules and client
preferences.

These are read-only snapshots supplied by the external configuration store.
"""

from enum import Enum
from typing import List, Optional

from pydantic import Field, field_validator, model_validator, ConfigDict

from .base import CamelModel, OfficeId


class OfficeSize(str, Enum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


class OverrideLevel(str, Enum):
    """How strongly a matching rule acts on its listed offices."""
    HARD = "hard"   # listed offices are removed from candidacy
    SOFT = "soft"   # listed offices are down-ranked
    NONE = "none"   # recorded in the evaluation log only


class RuleType(str, Enum):
    """Rule types understood by the rule evaluator."""
    ACCESSIBILITY = "accessibility"
    AGE_GROUP = "age_group"
    SESSION_TYPE = "session_type"
    ROOM_TYPE = "room_type"
    CLINICIAN = "clinician"
    FIXED = "fixed"
    CLINICIAN_PRIMARY = "clinician_primary"
    CLINICIAN_ALTERNATIVE = "clinician_alternative"
    CLIENT = "client"
    SPECIAL_FEATURES = "special_features"
    ROOM_CONSISTENCY = "room_consistency"


class Office(CamelModel):
    """
    A physical treatment office.
    """
    office_id: OfficeId = Field(description="Canonical <Floor>-<Unit> id")
    name: str = Field(default="", description="Display name")
    in_service: bool = Field(default=True)
    is_accessible: bool = Field(default=False, description="Step-free / wheelchair accessible")
    size: OfficeSize = Field(default=OfficeSize.MEDIUM)
    age_groups: List[str] = Field(default_factory=list)
    special_features: List[str] = Field(default_factory=list)

    # Derived from clinician records by the caller
    preferred_by_clinicians: List[str] = Field(default_factory=list)
    primary_clinician: Optional[str] = Field(default=None)
    alternative_clinicians: List[str] = Field(default_factory=list)

    is_flex_space: bool = Field(default=False, description="Shared space, coordinate with team")
    notes: Optional[str] = Field(default=None)

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "officeId": "B-1",
            "name": "Sunroom",
            "inService": True,
            "isAccessible": True,
            "size": "large",
            "ageGroups": ["adult", "teen"],
            "specialFeatures": ["group", "natural-light"]
        }
    })


class ClinicianProfile(CamelModel):
    clinician_id: str = Field(min_length=1)
    name: str = Field(default="")
    role: str = Field(default="clinician", description="owner | admin | clinician | intern")
    external_practitioner_id: Optional[str] = Field(
        default=None,
        description="Practitioner id in the appointment source"
    )
    preferred_offices: List[OfficeId] = Field(
        default_factory=list,
        description="Ordered, highest preference first"
    )
    allows_relationship: bool = Field(default=False)
    age_range_min: int = Field(default=0, ge=0)
    age_range_max: int = Field(default=120, ge=0)
    specialties: List[str] = Field(default_factory=list)

    @model_validator(mode='after')
    def validate_age_range(self):
        if self.age_range_max < self.age_range_min:
            raise ValueError("age_range_max cannot be below age_range_min")
        return self

    def matches(self, clinician_id: str) -> bool:
        """A request may carry either our id or the appointment source's id."""
        return clinician_id in (self.clinician_id, self.external_practitioner_id)


class AssignmentRule(CamelModel):
    """
    Advisory overlay evaluated in ascending ``priority`` order.
    ``condition`` is interpreted according to ``rule_type``.
    """
    priority: int = Field(description="Lower is evaluated first")
    rule_name: str = Field(default="")
    rule_type: str = Field(min_length=1)
    condition: Optional[str] = Field(default=None)
    office_ids: List[OfficeId] = Field(default_factory=list)
    override_level: OverrideLevel = Field(default=OverrideLevel.NONE)
    active: bool = Field(default=True)
    notes: Optional[str] = Field(default=None)

    @field_validator('rule_type')
    @classmethod
    def normalize_rule_type(cls, v):
        return v.strip().lower().replace("-", "_")

    @property
    def label(self) -> str:
        return self.rule_name or f"{self.rule_type}#{self.priority}"


class ClientPreference(CamelModel):
    client_id: str = Field(min_length=1)
    name: str = Field(default="")
    mobility_needs: List[str] = Field(default_factory=list)
    sensory_preferences: List[str] = Field(default_factory=list)
    physical_needs: List[str] = Field(default_factory=list)
    support_needs: List[str] = Field(default_factory=list)
    special_features: List[str] = Field(default_factory=list)
    room_consistency: int = Field(
        default=1,
        ge=1,
        le=5,
        description="5 = strongest preference for the same room every time"
    )
    assigned_office: Optional[OfficeId] = Field(default=None, description="Sticky prior assignment")
    preferred_clinician: Optional[str] = Field(default=None)
    additional_notes: Optional[str] = Field(default=None)

    @field_validator('assigned_office', mode='before')
    @classmethod
    def blank_office_is_none(cls, v):
        # The store writes an empty cell when nothing is assigned
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def has_mobility_needs(self) -> bool:
        return bool(self.mobility_needs)
