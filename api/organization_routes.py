"""Organization endpoints. The acting organization always comes from the token."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

import analytics
from api.patient_routes import apply_patient_filters
from auth import Principal, get_current_principal, get_current_organization, get_password_hash, email_taken
from database import get_db, atomic
from models import Doctor, Organization, Patient
from relationships import detach_doctor_from_organization, dissolve_organization
from schemas import OrganizationUpdateRequest, RosterDoctorRequest
from serializers import doctor_to_dict, organization_to_dict, patient_to_dict
from utils.pagination import paginate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/organization", tags=["organization"])


def _roster_query(db: Session, organization: Organization):
    return (
        db.query(Doctor)
        .filter(Doctor.organization_id == organization.id)
        .order_by(Doctor.created_at.desc(), Doctor.id.desc())
    )


# ============================================================
# DASHBOARD & ANALYTICS
# ============================================================
@router.get("/dashboard")
def get_dashboard(organization: Organization = Depends(get_current_organization), db: Session = Depends(get_db)):
    return {"success": True, "data": analytics.organization_dashboard(db, organization)}


@router.get("/analytics")
def get_analytics(
    days: int = Query(30, ge=1, le=365),
    organization: Organization = Depends(get_current_organization),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": analytics.organization_analytics(db, organization, days=days)}


@router.get("/all")
def get_all_organizations(principal: Principal = Depends(get_current_principal), db: Session = Depends(get_db)):
    organizations = db.query(Organization).order_by(Organization.created_at.desc(), Organization.id.desc()).all()
    return {"success": True, "count": len(organizations), "data": [organization_to_dict(o) for o in organizations]}


# ============================================================
# PROFILE
# ============================================================
@router.get("/profile")
def get_profile(organization: Organization = Depends(get_current_organization), db: Session = Depends(get_db)):
    doctors = _roster_query(db, organization).all()
    return {
        "success": True,
        "data": {
            "organization": organization_to_dict(organization),
            "doctors": [doctor_to_dict(d) for d in doctors],
        },
    }


@router.put("/profile")
def update_profile(
    body: OrganizationUpdateRequest,
    organization: Organization = Depends(get_current_organization),
    db: Session = Depends(get_db),
):
    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    if "email" in changes:
        changes["email"] = changes["email"].lower()
        if email_taken(db, changes["email"], exclude_id=organization.id):
            raise HTTPException(status_code=400, detail="Email is already taken by another account")

    try:
        with atomic(db):
            for field, value in changes.items():
                setattr(organization, field, value)
    except IntegrityError:
        raise HTTPException(status_code=400, detail="Email is already taken by another account")

    return {"success": True, "message": "Organization updated successfully", "data": organization_to_dict(organization)}


@router.delete("/profile")
def delete_profile(organization: Organization = Depends(get_current_organization), db: Session = Depends(get_db)):
    organization_id = organization.id
    with atomic(db):
        detached = dissolve_organization(db, organization)

    logger.info("Organization %s deleted, %d doctors made independent", organization_id, detached)
    return {"success": True, "message": "Organization deleted successfully", "data": {"detachedDoctors": detached}}


# ============================================================
# ROSTER
# ============================================================
@router.get("/doctors")
def get_doctors(organization: Organization = Depends(get_current_organization), db: Session = Depends(get_db)):
    doctors = _roster_query(db, organization).all()
    return {"success": True, "count": len(doctors), "data": [doctor_to_dict(d, include_patients=True) for d in doctors]}


@router.post("/doctors", status_code=status.HTTP_201_CREATED)
def add_doctor(
    body: RosterDoctorRequest,
    organization: Organization = Depends(get_current_organization),
    db: Session = Depends(get_db),
):
    email = body.email.lower()
    if email_taken(db, email):
        raise HTTPException(status_code=400, detail="An account already exists with this email")

    doctor = Doctor(
        full_name=body.full_name,
        email=email,
        hashed_password=get_password_hash(body.password),
        specialty=body.specialty or None,
        organization_id=organization.id,
    )
    try:
        with atomic(db):
            db.add(doctor)
    except IntegrityError:
        raise HTTPException(status_code=400, detail="An account already exists with this email")
    db.refresh(doctor)

    logger.info("Organization %s added doctor %s", organization.id, doctor.id)
    return {"success": True, "message": "Doctor added to organization successfully", "data": doctor_to_dict(doctor)}


@router.delete("/doctors/{doctor_id}")
def remove_doctor(
    doctor_id: str,
    organization: Organization = Depends(get_current_organization),
    db: Session = Depends(get_db),
):
    doctor = (
        db.query(Doctor)
        .filter(Doctor.id == doctor_id, Doctor.organization_id == organization.id)
        .first()
    )
    if doctor is None:
        raise HTTPException(status_code=404, detail="Doctor not found in this organization")

    with atomic(db):
        detach_doctor_from_organization(db, doctor)

    logger.info("Organization %s removed doctor %s", organization.id, doctor_id)
    return {"success": True, "message": "Doctor removed from organization successfully"}


# ============================================================
# PATIENT ROLLUP
# ============================================================
@router.get("/patients")
def get_patients(
    search: Optional[str] = None,
    gender: Optional[str] = None,
    age: Optional[int] = Query(None, ge=0, le=150),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    organization: Organization = Depends(get_current_organization),
    db: Session = Depends(get_db),
):
    query = db.query(Patient).filter(Patient.doctors.any(Doctor.organization_id == organization.id))
    query = apply_patient_filters(query, search, gender, age)
    patients, pagination = paginate(query.order_by(Patient.created_at.desc(), Patient.id.desc()), page, limit)
    return {"success": True, "data": [patient_to_dict(p) for p in patients], "pagination": pagination}
