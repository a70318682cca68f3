"""
Medicine model.

WHY: The clinic keeps a formulary of medicines doctors prescribe after
dental procedures. Entries are never hard-linked to prescriptions, so
they can be discontinued without breaking history.
"""

import enum
from sqlalchemy import Column, String, Text, Boolean, Enum

from app.models.base import Base, TimestampMixin, PrimaryKeyMixin


class MedicineCategory(str, enum.Enum):
    ANTIBIOTIC = "Antibiotic"
    PAIN_RELIEF = "Pain Relief"
    ANTI_INFLAMMATORY = "Anti-inflammatory"
    ANTISEPTIC = "Antiseptic"
    ANESTHETIC = "Anesthetic"
    MOUTH_RINSE = "Mouth Rinse"
    FLUORIDE_TREATMENT = "Fluoride Treatment"
    VITAMIN_SUPPLEMENT = "Vitamin/Supplement"


class DentalUse(str, enum.Enum):
    ROOT_CANAL = "Root Canal"
    TOOTH_EXTRACTION = "Tooth Extraction"
    DENTAL_CLEANING = "Dental Cleaning"
    DENTAL_FILLING = "Dental Filling"
    GUM_TREATMENT = "Gum Treatment"
    ORAL_SURGERY = "Oral Surgery"
    PREVENTIVE_CARE = "Preventive Care"
    GENERAL_TREATMENT = "General Treatment"


class DosageForm(str, enum.Enum):
    TABLET = "Tablet"
    CAPSULE = "Capsule"
    LIQUID_SYRUP = "Liquid/Syrup"
    GEL = "Gel"
    OINTMENT = "Ointment"
    MOUTHWASH = "Mouthwash"
    DROPS = "Drops"


class MedicineUnit(str, enum.Enum):
    MG = "mg"
    G = "g"
    ML = "ml"
    MCG = "mcg"
    IU = "IU"
    PERCENT = "%"
    UNITS = "units"


class MedicineStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    DISCONTINUED = "discontinued"


class Medicine(Base, PrimaryKeyMixin, TimestampMixin):
    """A medicine in the clinic formulary."""

    __tablename__ = "medicines"

    medicine_name = Column(String(100), nullable=False, index=True)
    generic_name = Column(String(100), nullable=True)
    brand_name = Column(String(100), nullable=True)

    category = Column(Enum(MedicineCategory), nullable=False, index=True)
    dental_use = Column(Enum(DentalUse), nullable=False, index=True)
    dosage_form = Column(Enum(DosageForm), nullable=False)
    strength = Column(String(50), nullable=False)
    unit = Column(Enum(MedicineUnit), nullable=False, default=MedicineUnit.MG)

    manufacturer = Column(String(100), nullable=True)
    description = Column(Text, nullable=True)
    dosage_instructions = Column(String(500), nullable=False)
    prescription_required = Column(Boolean, nullable=False, default=True)

    status = Column(Enum(MedicineStatus), nullable=False, default=MedicineStatus.ACTIVE, index=True)
    is_active = Column(Boolean, nullable=False, default=True)

    @property
    def display_name(self) -> str:
        return f"{self.medicine_name} {self.strength}{self.unit.value if self.unit else ''}"

    def __repr__(self) -> str:
        return f"<Medicine(id={self.id}, name={self.medicine_name}, strength={self.strength})>"
