import io
import logging
import os
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, UploadFile, File, Form, status
from fastapi.responses import FileResponse
from PIL import Image, UnidentifiedImageError
from sqlalchemy.orm import Session

from auth import Principal, get_current_principal, get_current_doctor
from config import UPLOAD_DIR, MAX_UPLOAD_BYTES
from database import get_db, atomic
from grading import Grader, get_grader
from models import Doctor, MedicalImage, Patient, GENDERS
from relationships import link_doctor_patient, delete_medical_image, remove_image_file
from schemas import MedicalImageUpdateRequest
from serializers import medical_image_to_dict
from utils.dates import utcnow
from utils.pagination import paginate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/medical-images", tags=["medical-images"])

ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".bmp", ".gif", ".tif", ".tiff", ".webp"}


def _validate_image(file: UploadFile, image_bytes: bytes) -> None:
    if not file.content_type or not file.content_type.startswith("image/"):
        raise HTTPException(status_code=400, detail="File must be an image")
    if not image_bytes:
        raise HTTPException(status_code=400, detail="No image file uploaded")
    if len(image_bytes) > MAX_UPLOAD_BYTES:
        raise HTTPException(
            status_code=400,
            detail=f"Image exceeds the {MAX_UPLOAD_BYTES // (1024 * 1024)}MB limit",
        )
    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            img.verify()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError):
        raise HTTPException(status_code=400, detail="File is not a readable image")


def _stored_filename(original_name: Optional[str]) -> str:
    ext = os.path.splitext(original_name or "")[1].lower()
    if ext not in ALLOWED_EXTENSIONS:
        ext = ".img"
    return f"medical-{uuid.uuid4().hex}{ext}"


def _record_code(image: MedicalImage) -> str:
    """Display id like LIV-202610007."""
    return f"LIV-{image.uploaded_at:%Y%m}{image.id % 1000:03d}"


def _get_image(db: Session, image_id: int) -> MedicalImage:
    image = db.get(MedicalImage, image_id)
    if image is None:
        raise HTTPException(status_code=404, detail="Medical image not found")
    return image


def _require_owner(image: MedicalImage, doctor: Doctor, action: str) -> None:
    if image.doctor_id != doctor.id:
        raise HTTPException(status_code=403, detail=f"Not authorized to {action} this record")


# ============================================================
# UPLOAD + GRADING
# ============================================================
@router.post("/upload", status_code=status.HTTP_201_CREATED)
def upload_medical_image(
    image: UploadFile = File(...),
    patient_name: str = Form(..., alias="patientName", min_length=1, max_length=100),
    patient_age: Optional[int] = Form(None, alias="patientAge", ge=0, le=150),
    patient_gender: Optional[str] = Form(None, alias="patientGender"),
    description: Optional[str] = Form(None, max_length=500),
    current_doctor: Doctor = Depends(get_current_doctor),
    grader: Grader = Depends(get_grader),
    db: Session = Depends(get_db),
):
    patient_name = patient_name.strip()
    if not patient_name:
        raise HTTPException(status_code=400, detail="Patient name is required")
    gender = patient_gender.strip().lower() if patient_gender else None
    if gender and gender not in GENDERS:
        raise HTTPException(status_code=400, detail=f"gender must be one of {', '.join(GENDERS)}")

    image_bytes = image.file.read()
    _validate_image(image, image_bytes)

    try:
        result = grader.grade(image_bytes)
    except Exception:
        logger.exception("Grading failed for upload by doctor %s", current_doctor.id)
        raise HTTPException(status_code=500, detail="Grading failed")

    image_path = os.path.join(UPLOAD_DIR, _stored_filename(image.filename))
    with open(image_path, "wb") as f:
        f.write(image_bytes)

    try:
        with atomic(db):
            patient = (
                db.query(Patient)
                .filter(Patient.full_name == patient_name)
                .order_by(Patient.id.asc())
                .first()
            )
            created_patient = patient is None
            if created_patient:
                patient = Patient(full_name=patient_name, age=patient_age, gender=gender)
                db.add(patient)
                db.flush()
            link_doctor_patient(db, current_doctor, patient)

            record = MedicalImage(
                patient=patient,
                doctor=current_doctor,
                image_path=image_path,
                description=description,
                grade=result.grade,
                confidence=result.confidence,
                uploaded_at=utcnow(),
            )
            db.add(record)
    except Exception:
        remove_image_file(image_path)
        raise
    db.refresh(record)

    logger.info(
        "Doctor %s uploaded record %s for %s patient %s (grade %s, %.1f%%)",
        current_doctor.id, record.id, "new" if created_patient else "existing",
        patient.id, result.grade, result.confidence,
    )
    return {
        "success": True,
        "message": "Medical record created successfully",
        "data": {
            "id": _record_code(record),
            "medicalImage": medical_image_to_dict(record),
            "analysis": {"grade": result.grade, "confidence": result.confidence, "status": "completed"},
        },
    }


# ============================================================
# FILES
# ============================================================
@router.get("/file/{filename}")
def serve_image_file(filename: str, principal: Principal = Depends(get_current_principal)):
    safe_name = os.path.basename(filename)
    path = os.path.join(UPLOAD_DIR, safe_name)
    if safe_name != filename or not os.path.isfile(path):
        raise HTTPException(status_code=404, detail="Image file not found")
    return FileResponse(path=path, filename=safe_name)


# ============================================================
# CRUD
# ============================================================
@router.get("")
def get_medical_images(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    doctor_id: Optional[str] = Query(None, alias="doctorId"),
    patient_id: Optional[int] = Query(None, alias="patientId"),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    query = db.query(MedicalImage)
    if doctor_id:
        query = query.filter(MedicalImage.doctor_id == doctor_id)
    if patient_id is not None:
        query = query.filter(MedicalImage.patient_id == patient_id)
    query = query.order_by(MedicalImage.uploaded_at.desc(), MedicalImage.id.desc())

    images, pagination = paginate(query, page, limit)
    return {"success": True, "data": [medical_image_to_dict(i) for i in images], "pagination": pagination}


@router.get("/{image_id}")
def get_medical_image(image_id: int, principal: Principal = Depends(get_current_principal), db: Session = Depends(get_db)):
    return {"success": True, "data": medical_image_to_dict(_get_image(db, image_id))}


@router.put("/{image_id}")
def update_medical_image(
    image_id: int,
    body: MedicalImageUpdateRequest,
    current_doctor: Doctor = Depends(get_current_doctor),
    db: Session = Depends(get_db),
):
    image = _get_image(db, image_id)
    _require_owner(image, current_doctor, "update")

    with atomic(db):
        for field, value in body.model_dump(exclude_unset=True).items():
            setattr(image, field, value)
    db.refresh(image)
    return {"success": True, "message": "Medical image updated successfully", "data": medical_image_to_dict(image)}


@router.delete("/{image_id}")
def delete_medical_image_route(
    image_id: int,
    current_doctor: Doctor = Depends(get_current_doctor),
    db: Session = Depends(get_db),
):
    image = _get_image(db, image_id)
    _require_owner(image, current_doctor, "delete")

    image_path = image.image_path
    with atomic(db):
        delete_medical_image(db, image)
    remove_image_file(image_path)

    logger.info("Doctor %s deleted medical image %s", current_doctor.id, image_id)
    return {"success": True, "message": "Medical image deleted successfully"}
