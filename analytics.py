"""Dashboard and analytics aggregation for doctors and organizations.

Every function takes an optional ``now`` so period boundaries can be pinned.
All boundaries are UTC calendar boundaries (see ``utils.dates``).
"""
from datetime import timedelta

from sqlalchemy import distinct, func, select
from sqlalchemy.orm import Session

from config import GRADES
from models import Doctor, MedicalImage, Organization, doctor_patients
from utils.dates import utcnow, day_window, month_window, format_display_date, format_month_label

GRADE_COLORS = {
    "F0": "#3b82f6",
    "F1": "#22c55e",
    "F2": "#eab308",
    "F3": "#f97316",
    "F4": "#ef4444",
}

RECENT_RECORDS_LIMIT = 10
TOP_SPECIALTIES_LIMIT = 5
TOP_DOCTORS_LIMIT = 10
TREND_MONTHS = 6
DEFAULT_SPECIALTY = "General"


# -----------------------------
# Ratio helpers
# -----------------------------
def describe_change(current: int, previous: int, period: str = "month") -> dict:
    """Compare two consecutive periods.

    A previous count of zero has no meaningful delta: the current period is
    reported as the first one with activity instead.
    """
    if previous == 0:
        if current == 0:
            return {"current": 0, "previous": 0, "delta": 0, "firstPeriod": False, "text": "no activity"}
        return {
            "current": current,
            "previous": 0,
            "delta": None,
            "firstPeriod": True,
            "text": f"first {period} with activity",
        }
    delta = current - previous
    reference = "yesterday" if period == "day" else f"last {period}"
    return {
        "current": current,
        "previous": previous,
        "delta": delta,
        "firstPeriod": False,
        "text": f"{delta:+d} from {reference}",
    }


def growth_rate(current: int, previous: int) -> float:
    if previous == 0:
        return 0.0
    return round((current - previous) / previous * 100, 1)


def completion_rate(graded: int, total: int) -> float:
    """Percent of records carrying a grade. Not a measure of diagnostic accuracy."""
    if total == 0:
        return 0.0
    return round(graded / total * 100, 1)


# -----------------------------
# Query helpers
# -----------------------------
def _count_records(db: Session, *criteria) -> int:
    return db.query(func.count(MedicalImage.id)).filter(*criteria).scalar() or 0


def _in_window(start, end):
    return (MedicalImage.uploaded_at >= start, MedicalImage.uploaded_at < end)


def _roster_filter(organization: Organization):
    return MedicalImage.doctor_id.in_(select(Doctor.id).where(Doctor.organization_id == organization.id))


def _patient_counts(db: Session, doctor_ids) -> dict:
    if not doctor_ids:
        return {}
    rows = (
        db.query(doctor_patients.c.doctor_id, func.count(doctor_patients.c.patient_id))
        .filter(doctor_patients.c.doctor_id.in_(doctor_ids))
        .group_by(doctor_patients.c.doctor_id)
        .all()
    )
    return dict(rows)


def _roster(db: Session, organization: Organization):
    return (
        db.query(Doctor)
        .filter(Doctor.organization_id == organization.id)
        .order_by(Doctor.created_at.desc(), Doctor.id.desc())
        .all()
    )


# -----------------------------
# Doctor dashboard
# -----------------------------
def grade_distribution(db: Session, doctor: Doctor) -> list:
    rows = (
        db.query(MedicalImage.grade, func.count(MedicalImage.id))
        .filter(MedicalImage.doctor_id == doctor.id, MedicalImage.grade.isnot(None))
        .group_by(MedicalImage.grade)
        .all()
    )
    counts = dict(rows)
    return [{"name": grade, "value": counts.get(grade, 0), "color": GRADE_COLORS[grade]} for grade in GRADES]


def recent_records(db: Session, doctor: Doctor, limit: int = RECENT_RECORDS_LIMIT) -> list:
    records = (
        db.query(MedicalImage)
        .filter(MedicalImage.doctor_id == doctor.id)
        .order_by(MedicalImage.uploaded_at.desc(), MedicalImage.id.desc())
        .limit(limit)
        .all()
    )
    return [
        {
            "id": record.id,
            "patientId": record.patient_id,
            "patientName": record.patient.full_name,
            "date": format_display_date(record.uploaded_at),
            "uploadedAt": record.uploaded_at.isoformat(),
            "grade": record.grade or "Pending",
            "confidence": record.confidence,
        }
        for record in records
    ]


def doctor_dashboard(db: Session, doctor: Doctor, now=None) -> dict:
    now = now or utcnow()
    this_month = month_window(now)
    last_month = month_window(now, -1)
    own = MedicalImage.doctor_id == doctor.id

    total = _count_records(db, own)
    graded = _count_records(db, own, MedicalImage.grade.isnot(None))
    monthly = _count_records(db, own, *_in_window(*this_month))
    previous_month = _count_records(db, own, *_in_window(*last_month))
    before_this_month = _count_records(db, own, MedicalImage.uploaded_at < this_month[0])

    return {
        "stats": {
            "totalRecords": total,
            "totalChange": describe_change(total, before_this_month),
            "monthlyRecords": monthly,
            "previousMonthRecords": previous_month,
            "monthlyChange": describe_change(monthly, previous_month),
            "gradedRecords": graded,
            "completionRate": completion_rate(graded, total),
        },
        "recentRecords": recent_records(db, doctor),
        "gradeDistribution": grade_distribution(db, doctor),
    }


# -----------------------------
# Organization dashboard
# -----------------------------
def organization_dashboard(db: Session, organization: Organization, now=None) -> dict:
    now = now or utcnow()
    this_month = month_window(now)
    last_month = month_window(now, -1)
    today = day_window(now)
    yesterday = day_window(now, -1)
    in_roster = _roster_filter(organization)

    doctors = _roster(db, organization)
    patient_counts = _patient_counts(db, [d.id for d in doctors])

    joined_this_month = sum(1 for d in doctors if this_month[0] <= d.created_at < this_month[1])
    joined_last_month = sum(1 for d in doctors if last_month[0] <= d.created_at < last_month[1])

    records_today = _count_records(db, in_roster, *_in_window(*today))
    records_yesterday = _count_records(db, in_roster, *_in_window(*yesterday))
    records_month = _count_records(db, in_roster, *_in_window(*this_month))
    records_last_month = _count_records(db, in_roster, *_in_window(*last_month))

    return {
        "stats": {
            "totalDoctors": len(doctors),
            "doctorsChange": describe_change(joined_this_month, joined_last_month),
            "totalRecordsToday": records_today,
            "recordsTodayChange": describe_change(records_today, records_yesterday, period="day"),
            "totalRecordsMonth": records_month,
            "recordsMonthChange": describe_change(records_month, records_last_month),
        },
        "doctors": [
            {
                "id": doctor.id,
                "fullName": doctor.full_name,
                "email": doctor.email,
                "specialty": doctor.specialty or DEFAULT_SPECIALTY,
                "patientCount": patient_counts.get(doctor.id, 0),
                "joinedDate": format_display_date(doctor.created_at),
            }
            for doctor in doctors
        ],
    }


# -----------------------------
# Organization analytics
# -----------------------------
def top_specialties(doctors, limit: int = TOP_SPECIALTIES_LIMIT) -> list:
    counts = {}
    for doctor in doctors:
        specialty = (doctor.specialty or "").strip() or DEFAULT_SPECIALTY
        counts[specialty] = counts.get(specialty, 0) + 1
    ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return [{"specialty": name, "count": count} for name, count in ranked[:limit]]


def monthly_trends(db: Session, organization: Organization, now=None, months: int = TREND_MONTHS) -> list:
    """Record counts for the trailing calendar months, oldest first, current month last."""
    now = now or utcnow()
    in_roster = _roster_filter(organization)
    trends = []
    for offset in range(-(months - 1), 1):
        start, end = month_window(now, offset)
        trends.append({"month": format_month_label(start), "records": _count_records(db, in_roster, *_in_window(start, end))})
    return trends


def doctor_activity(db: Session, doctors, days: int = 30, now=None, limit: int = TOP_DOCTORS_LIMIT) -> list:
    """Rank roster doctors by records uploaded in the trailing `days` window."""
    now = now or utcnow()
    since = now - timedelta(days=days)
    doctor_ids = [d.id for d in doctors]
    activity = {}
    if doctor_ids:
        rows = (
            db.query(
                MedicalImage.doctor_id,
                func.count(MedicalImage.id),
                func.count(distinct(MedicalImage.patient_id)),
            )
            .filter(
                MedicalImage.doctor_id.in_(doctor_ids),
                MedicalImage.uploaded_at >= since,
                MedicalImage.uploaded_at <= now,
            )
            .group_by(MedicalImage.doctor_id)
            .all()
        )
        activity = {doctor_id: (records, patients) for doctor_id, records, patients in rows}

    ranked = sorted(
        (
            {
                "doctorId": doctor.id,
                "doctorName": doctor.full_name,
                "specialty": doctor.specialty or DEFAULT_SPECIALTY,
                "records": activity.get(doctor.id, (0, 0))[0],
                "patients": activity.get(doctor.id, (0, 0))[1],
            }
            for doctor in doctors
        ),
        key=lambda row: (-row["records"], -row["patients"], row["doctorName"]),
    )
    return ranked[:limit]


def organization_analytics(db: Session, organization: Organization, days: int = 30, now=None) -> dict:
    now = now or utcnow()
    in_roster = _roster_filter(organization)
    doctors = _roster(db, organization)
    doctor_ids = [d.id for d in doctors]

    total_patients = 0
    if doctor_ids:
        total_patients = (
            db.query(func.count(distinct(doctor_patients.c.patient_id)))
            .filter(doctor_patients.c.doctor_id.in_(doctor_ids))
            .scalar()
            or 0
        )

    this_month = _count_records(db, in_roster, *_in_window(*month_window(now)))
    last_month = _count_records(db, in_roster, *_in_window(*month_window(now, -1)))

    return {
        "totalDoctors": len(doctors),
        "totalPatients": total_patients,
        "totalRecords": _count_records(db, in_roster),
        "recordsThisMonth": this_month,
        "recordsLastMonth": last_month,
        "growthRate": growth_rate(this_month, last_month),
        "topSpecialties": top_specialties(doctors),
        "monthlyTrends": monthly_trends(db, organization, now=now),
        "doctorActivity": doctor_activity(db, doctors, days=days, now=now),
        "timeRangeDays": days,
    }
