import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

import analytics
from auth import Principal, get_current_principal, get_current_doctor
from database import get_db, atomic
from models import Doctor, MedicalImage, Patient
from relationships import link_doctor_patient, delete_medical_image, remove_image_file
from schemas import AssignPatientRequest
from serializers import doctor_to_dict, medical_image_to_dict
from utils.pagination import paginate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/doctor", tags=["doctor"])


@router.get("/dashboard")
def get_dashboard(current_doctor: Doctor = Depends(get_current_doctor), db: Session = Depends(get_db)):
    return {"success": True, "data": analytics.doctor_dashboard(db, current_doctor)}


@router.get("/all")
def get_all_doctors(principal: Principal = Depends(get_current_principal), db: Session = Depends(get_db)):
    doctors = db.query(Doctor).order_by(Doctor.created_at.desc(), Doctor.id.desc()).all()
    return {"success": True, "count": len(doctors), "data": [doctor_to_dict(d) for d in doctors]}


@router.get("/profile/{doctor_id}")
def get_doctor_profile(
    doctor_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    doctor = db.get(Doctor, doctor_id)
    if doctor is None:
        raise HTTPException(status_code=404, detail="Doctor not found")
    return {"success": True, "data": doctor_to_dict(doctor, include_patients=True)}


@router.put("/assign-patient")
def assign_patient(
    body: AssignPatientRequest,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """Doctors assign patients to themselves; organizations to doctors on their roster."""
    if principal.is_doctor:
        if body.doctor_id and body.doctor_id != principal.id:
            raise HTTPException(status_code=403, detail="Doctors can only assign patients to themselves")
        doctor = principal.account
    else:
        if not body.doctor_id:
            raise HTTPException(status_code=400, detail="Please provide doctorId")
        doctor = db.get(Doctor, body.doctor_id)
        if doctor is None:
            raise HTTPException(status_code=404, detail="Doctor not found")
        if doctor.organization_id != principal.id:
            raise HTTPException(status_code=403, detail="Doctor is not part of your organization")

    patient = db.get(Patient, body.patient_id)
    if patient is None:
        raise HTTPException(status_code=404, detail="Patient not found")

    with atomic(db):
        added = link_doctor_patient(db, doctor, patient)
    if not added:
        raise HTTPException(status_code=400, detail="Patient is already assigned to this doctor")

    logger.info("Patient %s assigned to doctor %s", patient.id, doctor.id)
    return {"success": True, "message": "Patient assigned to doctor successfully"}


# ============================================================
# RECORDS (own records only)
# ============================================================
def _own_record(db: Session, record_id: int, doctor: Doctor) -> MedicalImage:
    record = (
        db.query(MedicalImage)
        .filter(MedicalImage.id == record_id, MedicalImage.doctor_id == doctor.id)
        .first()
    )
    if record is None:
        raise HTTPException(status_code=404, detail="Record not found")
    return record


@router.get("/records")
def get_records(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_doctor: Doctor = Depends(get_current_doctor),
    db: Session = Depends(get_db),
):
    query = (
        db.query(MedicalImage)
        .filter(MedicalImage.doctor_id == current_doctor.id)
        .order_by(MedicalImage.uploaded_at.desc(), MedicalImage.id.desc())
    )
    records, pagination = paginate(query, page, limit)
    return {"success": True, "data": [medical_image_to_dict(r) for r in records], "pagination": pagination}


@router.get("/records/{record_id}")
def get_record(record_id: int, current_doctor: Doctor = Depends(get_current_doctor), db: Session = Depends(get_db)):
    return {"success": True, "data": medical_image_to_dict(_own_record(db, record_id, current_doctor))}


@router.delete("/records/{record_id}")
def delete_record(record_id: int, current_doctor: Doctor = Depends(get_current_doctor), db: Session = Depends(get_db)):
    record = _own_record(db, record_id, current_doctor)
    image_path = record.image_path
    with atomic(db):
        delete_medical_image(db, record)
    remove_image_file(image_path)

    logger.info("Doctor %s deleted record %s", current_doctor.id, record_id)
    return {"success": True, "message": "Record deleted successfully"}
