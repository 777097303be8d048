# seed.py
"""Populate a local database with demo accounts and graded records.

    python seed.py --doctors 3 --patients 10 --records 25
"""
import argparse
import logging
import os
import random
import uuid
from datetime import timedelta

from PIL import Image

import models  # noqa: F401
from auth import get_password_hash
from config import UPLOAD_DIR
from database import Base, SessionLocal, atomic, engine
from grading import RandomGrader
from models import Doctor, MedicalImage, Organization, Patient, GENDERS
from relationships import link_doctor_patient
from utils.dates import utcnow

logger = logging.getLogger(__name__)

SPECIALTIES = ["Hepatology", "Gastroenterology", "Radiology", "Internal Medicine"]
FIRST_NAMES = ["Amina", "Karim", "Sara", "Youssef", "Lina", "Omar", "Nour", "Hedi", "Maya", "Sami"]
LAST_NAMES = ["Ben Ali", "Trabelsi", "Haddad", "Mansour", "Jaziri", "Khalil"]
DEMO_PASSWORD = "password123"


def _write_demo_image(rng: random.Random) -> str:
    path = os.path.join(UPLOAD_DIR, f"medical-{uuid.uuid4().hex}.png")
    shade = rng.randint(40, 200)
    Image.new("L", (64, 64), color=shade).save(path)
    return path


def seed(db, doctors=3, patients=10, records=25, seed_value=None):
    rng = random.Random(seed_value)
    grader = RandomGrader(rng=rng)
    now = utcnow()

    with atomic(db):
        organization = Organization(
            name="Demo Liver Clinic",
            email=f"clinic-{uuid.uuid4().hex[:6]}@demo-clinic.org",
            hashed_password=get_password_hash(DEMO_PASSWORD),
            type="clinic",
        )
        db.add(organization)
        db.flush()

        roster = []
        for i in range(doctors):
            doctor = Doctor(
                full_name=f"Dr. {rng.choice(FIRST_NAMES)} {rng.choice(LAST_NAMES)}",
                email=f"doctor{i}-{uuid.uuid4().hex[:6]}@demo-clinic.org",
                hashed_password=get_password_hash(DEMO_PASSWORD),
                specialty=rng.choice(SPECIALTIES),
                organization_id=organization.id,
            )
            db.add(doctor)
            roster.append(doctor)

        people = []
        for _ in range(patients):
            patient = Patient(
                full_name=f"{rng.choice(FIRST_NAMES)} {rng.choice(LAST_NAMES)}",
                age=rng.randint(18, 85),
                gender=rng.choice(GENDERS),
            )
            db.add(patient)
            people.append(patient)
        db.flush()

        for _ in range(records):
            doctor = rng.choice(roster)
            patient = rng.choice(people)
            link_doctor_patient(db, doctor, patient)
            result = grader.grade(b"")
            path = _write_demo_image(rng)
            db.add(MedicalImage(
                patient=patient,
                doctor=doctor,
                image_path=path,
                description="Seeded demo record",
                grade=result.grade,
                confidence=result.confidence,
                uploaded_at=now - timedelta(days=rng.randint(0, 150), hours=rng.randint(0, 23)),
            ))

    logger.info(
        "Seeded organization %s with %d doctors, %d patients and %d records",
        organization.email, doctors, patients, records,
    )
    return organization


def main():
    parser = argparse.ArgumentParser(description="Seed demo data for local development")
    parser.add_argument("--doctors", type=int, default=3)
    parser.add_argument("--patients", type=int, default=10)
    parser.add_argument("--records", type=int, default=25)
    parser.add_argument("--seed", type=int, default=None, help="random seed for reproducible data")
    args = parser.parse_args()

    if args.doctors < 1 or args.patients < 1:
        parser.error("--doctors and --patients must be at least 1")

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        organization = seed(db, args.doctors, args.patients, args.records, args.seed)
        print(f"Organization login: {organization.email} / {DEMO_PASSWORD}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
