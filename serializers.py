"""Model -> JSON-ready dict conversion. Password hashes never leave this module."""
import os

from utils.dates import format_display_date


def _iso(dt):
    return dt.isoformat() if dt is not None else None


def image_url(image_path: str) -> str:
    return f"/api/medical-images/file/{os.path.basename(image_path)}"


def organization_summary(organization):
    if organization is None:
        return None
    return {"id": organization.id, "name": organization.name}


def organization_to_dict(organization):
    return {
        "id": organization.id,
        "name": organization.name,
        "email": organization.email,
        "type": organization.type,
        "createdAt": _iso(organization.created_at),
    }


def doctor_summary(doctor):
    return {"id": doctor.id, "fullName": doctor.full_name, "specialty": doctor.specialty}


def patient_summary(patient):
    return {"id": patient.id, "fullName": patient.full_name, "age": patient.age, "gender": patient.gender}


def doctor_to_dict(doctor, include_patients=False):
    data = {
        "id": doctor.id,
        "fullName": doctor.full_name,
        "email": doctor.email,
        "specialty": doctor.specialty,
        "organization": organization_summary(doctor.organization),
        "patientCount": len(doctor.patients),
        "createdAt": _iso(doctor.created_at),
    }
    if include_patients:
        data["patients"] = [patient_summary(p) for p in doctor.patients]
    return data


def patient_to_dict(patient):
    return {
        **patient_summary(patient),
        "doctors": [doctor_summary(d) for d in patient.doctors],
        "createdAt": _iso(patient.created_at),
    }


def medical_image_to_dict(image):
    return {
        "id": image.id,
        "patient": patient_summary(image.patient),
        "doctor": doctor_summary(image.doctor),
        "imageUrl": image_url(image.image_path),
        "description": image.description,
        "grade": image.grade,
        "confidence": image.confidence,
        "uploadedAt": _iso(image.uploaded_at),
        "date": format_display_date(image.uploaded_at),
        "updatedAt": _iso(image.updated_at),
    }


def principal_to_dict(principal):
    account = principal.account
    if principal.is_doctor:
        return {
            "id": account.id,
            "email": account.email,
            "fullName": account.full_name,
            "specialty": account.specialty,
            "organization": organization_summary(account.organization),
            "type": principal.kind,
        }
    return {
        "id": account.id,
        "email": account.email,
        "fullName": account.name,
        "name": account.name,
        "organizationType": account.type,
        "type": principal.kind,
    }
