import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from auth import Principal, get_current_principal
from database import get_db, atomic
from models import Doctor, MedicalImage, Patient, GENDERS
from relationships import delete_patient_cascade, remove_image_file
from schemas import PatientCreateRequest, PatientUpdateRequest
from serializers import patient_to_dict, medical_image_to_dict
from utils.pagination import paginate, escape_like

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/patients", tags=["patients"])


def apply_patient_filters(query, search: Optional[str] = None, gender: Optional[str] = None, age: Optional[int] = None):
    """Case-insensitive name substring plus exact gender/age matches."""
    if search:
        query = query.filter(Patient.full_name.ilike(f"%{escape_like(search.strip())}%", escape="\\"))
    if gender:
        gender = gender.lower()
        if gender not in GENDERS:
            raise HTTPException(status_code=400, detail=f"gender must be one of {', '.join(GENDERS)}")
        query = query.filter(Patient.gender == gender)
    if age is not None:
        query = query.filter(Patient.age == age)
    return query


def _get_patient(db: Session, patient_id: int) -> Patient:
    patient = db.get(Patient, patient_id)
    if patient is None:
        raise HTTPException(status_code=404, detail="Patient not found")
    return patient


def _patient_page(query, page, limit):
    patients, pagination = paginate(query, page, limit)
    return {"success": True, "data": [patient_to_dict(p) for p in patients], "pagination": pagination}


@router.get("/search")
def search_patients(
    q: Optional[str] = None,
    gender: Optional[str] = None,
    age: Optional[int] = Query(None, ge=0, le=150),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    query = apply_patient_filters(db.query(Patient), q, gender, age)
    return _patient_page(query.order_by(Patient.full_name.asc(), Patient.id.asc()), page, limit)


@router.get("/doctor/{doctor_id}")
def get_patients_by_doctor(
    doctor_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    doctor = db.get(Doctor, doctor_id)
    if doctor is None:
        raise HTTPException(status_code=404, detail="Doctor not found")
    patients = (
        db.query(Patient)
        .filter(Patient.doctors.any(Doctor.id == doctor_id))
        .order_by(Patient.created_at.desc(), Patient.id.desc())
        .all()
    )
    return {"success": True, "count": len(patients), "data": [patient_to_dict(p) for p in patients]}


@router.get("")
def get_patients(
    search: Optional[str] = None,
    gender: Optional[str] = None,
    age: Optional[int] = Query(None, ge=0, le=150),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    query = apply_patient_filters(db.query(Patient), search, gender, age)
    return _patient_page(query.order_by(Patient.created_at.desc(), Patient.id.desc()), page, limit)


@router.get("/{patient_id}")
def get_patient(patient_id: int, principal: Principal = Depends(get_current_principal), db: Session = Depends(get_db)):
    patient = _get_patient(db, patient_id)
    images = (
        db.query(MedicalImage)
        .filter(MedicalImage.patient_id == patient.id)
        .order_by(MedicalImage.uploaded_at.desc(), MedicalImage.id.desc())
        .all()
    )
    return {
        "success": True,
        "data": {
            "patient": patient_to_dict(patient),
            "medicalImages": [medical_image_to_dict(i) for i in images],
        },
    }


@router.post("", status_code=status.HTTP_201_CREATED)
def create_patient(
    body: PatientCreateRequest,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    patient = Patient(full_name=body.full_name, gender=body.gender, age=body.age)
    with atomic(db):
        db.add(patient)
    db.refresh(patient)
    return {"success": True, "message": "Patient created successfully", "data": patient_to_dict(patient)}


@router.put("/{patient_id}")
def update_patient(
    patient_id: int,
    body: PatientUpdateRequest,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    patient = _get_patient(db, patient_id)
    changes = body.model_dump(exclude_unset=True)
    if "full_name" in changes and not changes["full_name"]:
        raise HTTPException(status_code=400, detail="Patient full name cannot be empty")

    with atomic(db):
        for field, value in changes.items():
            setattr(patient, field, value)
    db.refresh(patient)
    return {"success": True, "message": "Patient updated successfully", "data": patient_to_dict(patient)}


@router.delete("/{patient_id}")
def delete_patient(patient_id: int, principal: Principal = Depends(get_current_principal), db: Session = Depends(get_db)):
    patient = _get_patient(db, patient_id)
    with atomic(db):
        removed = delete_patient_cascade(db, patient)
    for path in removed["image_paths"]:
        remove_image_file(path)

    logger.info("%s %s deleted patient %s", principal.kind, principal.id, patient_id)
    return {
        "success": True,
        "message": "Patient deleted successfully",
        "data": {"deletedRecords": removed["images"], "unlinkedDoctors": removed["doctors"]},
    }
