"""
Pydantic schemas for the records that feed document filling.

Providers, office locations and mailing addresses are owned by the record
stores; the fill engine only reads them. Field names are snake_case with
camelCase aliases so records exported by the desktop stores load unchanged
and mapping paths such as ``lastName`` resolve on either spelling.
"""

from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class RecordBase(BaseModel):
    """Common configuration for all record schemas."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
        frozen=True,
    )


# ==============================================================================
# PROVIDER SCHEMAS
# ==============================================================================

class BoardCertification(RecordBase):
    """Board certification held by a provider."""

    board: Optional[str] = None
    specialty: Optional[str] = None
    certification_date: Optional[str] = None
    expiration_date: Optional[str] = None


class MedicalEducation(RecordBase):
    """Medical school, residency or fellowship entry."""

    name: Optional[str] = None
    institution: Optional[str] = None
    specialty: Optional[str] = None
    degree: Optional[str] = None
    graduation_year: Optional[str] = None
    completion_year: Optional[str] = None


class HospitalAffiliation(RecordBase):
    """Hospital privileges."""

    name: Optional[str] = None
    privilege_status: Optional[str] = None
    start_date: Optional[str] = None


class MalpracticeInsurance(RecordBase):
    """Malpractice coverage."""

    carrier: Optional[str] = None
    policy_number: Optional[str] = None
    coverage_amount: Optional[str] = None
    expiration_date: Optional[str] = None


class Provider(RecordBase):
    """Provider record."""

    id: str

    # Personal information
    first_name: Optional[str] = None
    middle_name: Optional[str] = None
    last_name: Optional[str] = None
    suffix: Optional[str] = None
    date_of_birth: Optional[str] = None
    ssn: Optional[str] = None

    # Professional information
    npi: Optional[str] = None
    license_number: Optional[str] = None
    license_state: Optional[str] = None
    license_expiration: Optional[str] = None
    dea_number: Optional[str] = None
    dea_expiration: Optional[str] = None
    specialties: List[str] = Field(default_factory=list)
    board_certifications: List[BoardCertification] = Field(default_factory=list)
    caqh_id: Optional[str] = None
    provider_type: Optional[str] = None
    taxonomy_codes: List[str] = Field(default_factory=list)

    # Contact information
    email: Optional[str] = None
    phone: Optional[str] = None
    cell_phone: Optional[str] = None
    fax: Optional[str] = None

    # Practice information
    practice_type: Optional[str] = None
    group_name: Optional[str] = None
    tax_id: Optional[str] = None
    medicare_number: Optional[str] = None
    medicaid_number: Optional[str] = None

    # Education
    medical_school: Optional[MedicalEducation] = None
    residency: Optional[MedicalEducation] = None
    fellowship: Optional[MedicalEducation] = None

    languages: List[str] = Field(default_factory=list)
    hospital_affiliations: List[HospitalAffiliation] = Field(default_factory=list)
    malpractice_insurance: Optional[MalpracticeInsurance] = None

    is_active: bool = True
    tags: List[str] = Field(default_factory=list)


# ==============================================================================
# OFFICE SCHEMAS
# ==============================================================================

class DayHours(RecordBase):
    """Opening hours for one weekday (24h HH:MM)."""

    open: Optional[str] = None
    close: Optional[str] = None
    lunch_start: Optional[str] = None
    lunch_end: Optional[str] = None


class OfficeHours(RecordBase):
    """Weekly office hours."""

    monday: Optional[DayHours] = None
    tuesday: Optional[DayHours] = None
    wednesday: Optional[DayHours] = None
    thursday: Optional[DayHours] = None
    friday: Optional[DayHours] = None
    saturday: Optional[DayHours] = None
    sunday: Optional[DayHours] = None


class OfficeLocation(RecordBase):
    """Office location record."""

    id: str
    location_name: Optional[str] = None
    location_type: Optional[str] = None

    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    county: Optional[str] = None

    main_phone: Optional[str] = None
    fax: Optional[str] = None
    appointment_phone: Optional[str] = None

    office_hours: Optional[OfficeHours] = None
    wheelchair_accessible: Optional[bool] = None

    provider_ids: List[str] = Field(default_factory=list)
    billing_npi: Optional[str] = Field(None, alias="billingNPI")
    place_of_service_code: Optional[str] = None

    is_active: bool = True


# ==============================================================================
# MAILING ADDRESS SCHEMAS
# ==============================================================================

class MailingAddress(RecordBase):
    """Mailing address record."""

    id: str
    address_name: Optional[str] = None
    address_type: Optional[str] = None

    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None

    attention_to: Optional[str] = None
    department: Optional[str] = None
    phone: Optional[str] = None

    provider_ids: List[str] = Field(default_factory=list)
    office_ids: List[str] = Field(default_factory=list)

    is_primary: bool = False
    is_active: bool = True
