from datetime import datetime

import analytics
from models import Doctor, MedicalImage, Organization, Patient
from relationships import link_doctor_patient
from utils.dates import add_months, day_window, month_window

NOW = datetime(2026, 10, 19, 12, 0, 0)


def _organization(db, name="Clinic"):
    organization = Organization(name=name, email=f"{name.lower()}@clinic.io", hashed_password="x", type="clinic")
    db.add(organization)
    db.flush()
    return organization


def _doctor(db, name, organization=None, email=None, created_at=NOW, specialty=None):
    doctor = Doctor(
        full_name=name,
        email=email or f"{name.lower().replace(' ', '.')}@clinic.io",
        hashed_password="x",
        specialty=specialty,
        organization_id=organization.id if organization else None,
        created_at=created_at,
    )
    db.add(doctor)
    db.flush()
    return doctor


def _record(db, doctor, patient, uploaded_at, grade="F1"):
    link_doctor_patient(db, doctor, patient)
    image = MedicalImage(
        patient=patient, doctor=doctor, image_path="/tmp/none.png",
        grade=grade, confidence=90.0, uploaded_at=uploaded_at,
    )
    db.add(image)
    db.flush()
    return image


def test_describe_change_first_period_is_explicit():
    change = analytics.describe_change(5, 0)
    assert change["firstPeriod"] is True
    assert change["delta"] is None
    assert change["text"] == "first month with activity"


def test_describe_change_wording():
    assert analytics.describe_change(0, 0)["text"] == "no activity"
    assert analytics.describe_change(7, 4)["text"] == "+3 from last month"
    assert analytics.describe_change(2, 5, period="day")["text"] == "-3 from yesterday"


def test_rates_never_divide_by_zero():
    assert analytics.completion_rate(0, 0) == 0.0
    assert analytics.growth_rate(4, 0) == 0.0
    assert analytics.growth_rate(6, 4) == 50.0
    assert analytics.completion_rate(2, 3) == 66.7


def test_calendar_windows():
    assert month_window(NOW) == (datetime(2026, 10, 1), datetime(2026, 11, 1))
    assert month_window(datetime(2026, 1, 15), -1) == (datetime(2025, 12, 1), datetime(2026, 1, 1))
    assert day_window(NOW, -1) == (datetime(2026, 10, 18), datetime(2026, 10, 19))
    assert add_months(datetime(2026, 12, 1), 1) == datetime(2027, 1, 1)


def test_doctor_with_no_records(db):
    doctor = _doctor(db, "Empty Doctor")
    dashboard = analytics.doctor_dashboard(db, doctor, now=NOW)
    stats = dashboard["stats"]
    assert stats["totalRecords"] == 0
    assert stats["completionRate"] == 0.0
    assert stats["monthlyChange"]["text"] == "no activity"
    assert dashboard["recentRecords"] == []
    assert [g["value"] for g in dashboard["gradeDistribution"]] == [0, 0, 0, 0, 0]


def test_doctor_dashboard_counts(db):
    doctor = _doctor(db, "Busy Doctor")
    patient = Patient(full_name="Jane Doe")
    db.add(patient)
    db.flush()
    _record(db, doctor, patient, datetime(2026, 9, 20), grade="F0")
    for day in (2, 5, 9):
        _record(db, doctor, patient, datetime(2026, 10, day), grade="F3")
    _record(db, doctor, patient, datetime(2026, 10, 10), grade=None)

    dashboard = analytics.doctor_dashboard(db, doctor, now=NOW)
    stats = dashboard["stats"]
    assert stats["totalRecords"] == 5
    assert stats["monthlyRecords"] == 4
    assert stats["previousMonthRecords"] == 1
    assert stats["monthlyChange"]["text"] == "+3 from last month"
    assert stats["gradedRecords"] == 4
    assert stats["completionRate"] == 80.0

    distribution = {g["name"]: g["value"] for g in dashboard["gradeDistribution"]}
    assert distribution == {"F0": 1, "F1": 0, "F2": 0, "F3": 3, "F4": 0}

    recent = dashboard["recentRecords"]
    assert recent[0]["grade"] == "Pending"
    assert recent[0]["date"] == "Oct 10, 2026"


def test_first_month_with_activity(db):
    doctor = _doctor(db, "New Doctor")
    patient = Patient(full_name="P")
    db.add(patient)
    db.flush()
    for day in range(1, 6):
        _record(db, doctor, patient, datetime(2026, 10, day))

    change = analytics.doctor_dashboard(db, doctor, now=NOW)["stats"]["monthlyChange"]
    assert change["current"] == 5
    assert change["firstPeriod"] is True
    assert change["text"] == "first month with activity"


def test_organization_with_two_doctors(db):
    organization = _organization(db)
    active = _doctor(db, "Zed Active", organization, specialty="Hepatology")
    idle = _doctor(db, "Amy Idle", organization)
    outsider = _doctor(db, "Out Sider")
    patient = Patient(full_name="Jane Doe")
    db.add(patient)
    db.flush()
    for day in (2, 10, 18):
        _record(db, active, patient, datetime(2026, 10, day))
    _record(db, outsider, patient, datetime(2026, 10, 18))

    dashboard = analytics.organization_dashboard(db, organization, now=NOW)
    assert dashboard["stats"]["totalDoctors"] == 2
    assert dashboard["stats"]["totalRecordsMonth"] == 3
    assert dashboard["stats"]["totalRecordsToday"] == 0
    assert dashboard["stats"]["recordsTodayChange"]["delta"] == -1
    by_id = {d["id"]: d for d in dashboard["doctors"]}
    assert by_id[active.id]["patientCount"] == 1
    assert by_id[idle.id]["patientCount"] == 0
    assert by_id[idle.id]["specialty"] == "General"

    result = analytics.organization_analytics(db, organization, days=30, now=NOW)
    assert result["totalRecords"] == 3
    assert result["totalPatients"] == 1
    assert result["recordsThisMonth"] == 3
    assert result["growthRate"] == 0.0
    activity = result["doctorActivity"]
    assert [row["doctorId"] for row in activity] == [active.id, idle.id]
    assert activity[0]["records"] == 3
    assert activity[1]["records"] == 0


def test_monthly_trends_end_with_current_month(db):
    organization = _organization(db)
    doctor = _doctor(db, "Trend Doctor", organization)
    patient = Patient(full_name="P")
    db.add(patient)
    db.flush()
    _record(db, doctor, patient, datetime(2026, 5, 3))
    _record(db, doctor, patient, datetime(2026, 10, 3))
    _record(db, doctor, patient, datetime(2026, 4, 30))

    trends = analytics.monthly_trends(db, organization, now=NOW)
    assert [t["month"] for t in trends] == ["May 2026", "Jun 2026", "Jul 2026", "Aug 2026", "Sep 2026", "Oct 2026"]
    assert [t["records"] for t in trends] == [1, 0, 0, 0, 0, 1]


def test_top_specialties_defaults_to_general(db):
    organization = _organization(db)
    _doctor(db, "A", organization, specialty="Hepatology")
    _doctor(db, "B", organization, specialty="Hepatology")
    _doctor(db, "C", organization)
    ranked = analytics.top_specialties(organization.doctors)
    assert ranked == [{"specialty": "Hepatology", "count": 2}, {"specialty": "General", "count": 1}]
