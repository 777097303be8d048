from sqlalchemy import Column, Integer, String, DateTime, Float, ForeignKey, Table, CheckConstraint
from sqlalchemy.orm import relationship

from database import Base
from utils.dates import utcnow
from utils.ids import new_doctor_id, new_organization_id

ORGANIZATION_TYPES = ("hospital", "clinic", "research", "other")
GENDERS = ("male", "female", "other")

# One row per Doctor<->Patient link; both sides of the relationship read it.
doctor_patients = Table(
    "doctor_patients",
    Base.metadata,
    Column("doctor_id", String, ForeignKey("doctors.id", ondelete="CASCADE"), primary_key=True),
    Column("patient_id", Integer, ForeignKey("patients.id", ondelete="CASCADE"), primary_key=True),
)


class Organization(Base):
    __tablename__ = "organizations"

    id = Column(String, primary_key=True, default=new_organization_id)
    name = Column(String(100), nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    type = Column(String, nullable=False, default="hospital")
    created_at = Column(DateTime, default=utcnow, nullable=False)

    doctors = relationship("Doctor", back_populates="organization")


class Doctor(Base):
    __tablename__ = "doctors"

    id = Column(String, primary_key=True, default=new_doctor_id)
    full_name = Column(String(100), nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    specialty = Column(String(50), nullable=True)
    organization_id = Column(String, ForeignKey("organizations.id"), nullable=True, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    organization = relationship("Organization", back_populates="doctors")
    patients = relationship("Patient", secondary=doctor_patients, back_populates="doctors")
    medical_images = relationship("MedicalImage", back_populates="doctor")


class Patient(Base):
    __tablename__ = "patients"
    __table_args__ = (CheckConstraint("age IS NULL OR (age >= 0 AND age <= 150)", name="ck_patient_age"),)

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String(100), nullable=False, index=True)
    age = Column(Integer, nullable=True)
    gender = Column(String, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    doctors = relationship("Doctor", secondary=doctor_patients, back_populates="patients")
    medical_images = relationship("MedicalImage", back_populates="patient", cascade="all, delete-orphan")


class MedicalImage(Base):
    __tablename__ = "medical_images"
    __table_args__ = (
        CheckConstraint("confidence IS NULL OR (confidence >= 0 AND confidence <= 100)", name="ck_image_confidence"),
    )

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)
    doctor_id = Column(String, ForeignKey("doctors.id"), nullable=False, index=True)

    image_path = Column(String, nullable=False)
    description = Column(String(500), nullable=True)

    grade = Column(String, nullable=True)
    confidence = Column(Float, nullable=True)

    uploaded_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    patient = relationship("Patient", back_populates="medical_images")
    doctor = relationship("Doctor", back_populates="medical_images")
