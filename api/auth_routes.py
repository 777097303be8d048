import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from auth import (
    DOCTOR, ORGANIZATION, Principal,
    verify_password, get_password_hash, create_access_token,
    get_current_principal, email_taken,
)
from database import get_db, atomic
from models import Doctor, Organization
from schemas import LoginRequest, DoctorSignupRequest, OrganizationSignupRequest, PasswordChangeRequest
from serializers import principal_to_dict

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _token_response(principal: Principal, message: str) -> dict:
    return {
        "success": True,
        "message": message,
        "data": principal_to_dict(principal),
        "token": create_access_token(principal.id),
        "token_type": "bearer",
    }


@router.post("/login")
def login(body: LoginRequest, db: Session = Depends(get_db)):
    email = body.email.lower()

    doctor = db.query(Doctor).filter(Doctor.email == email).first()
    if doctor and verify_password(body.password, doctor.hashed_password):
        return _token_response(Principal(DOCTOR, doctor), "Login successful")

    organization = db.query(Organization).filter(Organization.email == email).first()
    if organization and verify_password(body.password, organization.hashed_password):
        return _token_response(Principal(ORGANIZATION, organization), "Login successful")

    logger.warning("Failed login for %s", email)
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid email or password",
        headers={"WWW-Authenticate": "Bearer"},
    )


@router.post("/signup/doctor", status_code=status.HTTP_201_CREATED)
def signup_doctor(body: DoctorSignupRequest, db: Session = Depends(get_db)):
    email = body.email.lower()
    if email_taken(db, email):
        raise HTTPException(status_code=400, detail="An account already exists with this email")

    if body.organization_id and db.get(Organization, body.organization_id) is None:
        raise HTTPException(status_code=400, detail="Invalid organization ID")

    doctor = Doctor(
        full_name=body.full_name,
        email=email,
        hashed_password=get_password_hash(body.password),
        specialty=body.specialty or None,
        organization_id=body.organization_id or None,
    )
    try:
        with atomic(db):
            db.add(doctor)
    except IntegrityError:
        raise HTTPException(status_code=400, detail="An account already exists with this email")
    db.refresh(doctor)

    logger.info("Doctor %s signed up", doctor.id)
    return _token_response(Principal(DOCTOR, doctor), "Doctor account created successfully")


@router.post("/signup/organization", status_code=status.HTTP_201_CREATED)
def signup_organization(body: OrganizationSignupRequest, db: Session = Depends(get_db)):
    email = body.email.lower()
    if email_taken(db, email):
        raise HTTPException(status_code=400, detail="An account already exists with this email")

    organization = Organization(
        name=body.name,
        email=email,
        hashed_password=get_password_hash(body.password),
        type=body.type,
    )
    try:
        with atomic(db):
            db.add(organization)
    except IntegrityError:
        raise HTTPException(status_code=400, detail="An account already exists with this email")
    db.refresh(organization)

    logger.info("Organization %s signed up", organization.id)
    return _token_response(Principal(ORGANIZATION, organization), "Organization account created successfully")


@router.get("/me")
def get_me(principal: Principal = Depends(get_current_principal)):
    return {"success": True, "data": principal_to_dict(principal)}


@router.post("/logout")
def logout(principal: Principal = Depends(get_current_principal)):
    # Tokens are stateless; the client discards its copy.
    return {"success": True, "message": "Logged out successfully"}


@router.put("/password")
def change_password(
    body: PasswordChangeRequest,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    account = principal.account
    if not verify_password(body.current_password, account.hashed_password):
        raise HTTPException(status_code=400, detail="Current password is incorrect")
    if verify_password(body.new_password, account.hashed_password):
        raise HTTPException(status_code=400, detail="New password must be different from the current password")

    with atomic(db):
        account.hashed_password = get_password_hash(body.new_password)

    logger.info("Password changed for %s %s", principal.kind, principal.id)
    return {"success": True, "message": "Password updated successfully"}
