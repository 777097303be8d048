"""Paired updates for links that span collections.

These helpers only stage changes on the session. Callers run them inside
``database.atomic`` so both sides of a link land in the same commit.
"""
import logging
import os

from sqlalchemy.orm import Session

from models import Doctor, MedicalImage, Organization, Patient

logger = logging.getLogger(__name__)


def link_doctor_patient(db: Session, doctor: Doctor, patient: Patient) -> bool:
    """Link a doctor and a patient. Returns False if they were already linked."""
    if patient in doctor.patients:
        return False
    doctor.patients.append(patient)
    db.flush()
    return True


def delete_medical_image(db: Session, image: MedicalImage) -> None:
    db.delete(image)
    db.flush()


def remove_image_file(path: str) -> None:
    """Delete a stored upload; a missing file is not an error."""
    if path and os.path.exists(path):
        try:
            os.remove(path)
        except OSError:
            logger.exception("Could not remove image file %s", path)


def delete_patient_cascade(db: Session, patient: Patient) -> dict:
    """Remove a patient, every record that references it, and every doctor link.

    Returns the removed image paths so the caller can clear files once the
    transaction has committed.
    """
    images = db.query(MedicalImage).filter(MedicalImage.patient_id == patient.id).all()
    image_paths = [image.image_path for image in images]
    for image in images:
        db.delete(image)

    linked_doctors = list(patient.doctors)
    patient.doctors.clear()
    db.flush()

    db.delete(patient)
    db.flush()

    logger.info(
        "Deleted patient %s with %d records and %d doctor links",
        patient.id, len(images), len(linked_doctors),
    )
    return {"images": len(images), "doctors": len(linked_doctors), "image_paths": image_paths}


def detach_doctor_from_organization(db: Session, doctor: Doctor) -> None:
    """Make a doctor independent. The doctor and its records are kept."""
    doctor.organization_id = None
    db.flush()


def dissolve_organization(db: Session, organization: Organization) -> int:
    """Detach every roster doctor and delete the organization. Returns the detached count."""
    detached = (
        db.query(Doctor)
        .filter(Doctor.organization_id == organization.id)
        .update({Doctor.organization_id: None}, synchronize_session="fetch")
    )
    db.delete(organization)
    db.flush()
    return detached
