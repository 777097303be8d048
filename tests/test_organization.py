from conftest import PASSWORD
from models import Doctor, MedicalImage


def _add_doctor(client, org_headers, email="cuddy@clinic.io", full_name="Lisa Cuddy", **extra):
    body = {"fullName": full_name, "email": email, "password": PASSWORD, **extra}
    response = client.post("/api/organization/doctors", headers=org_headers, json=body)
    assert response.status_code == 201, response.text
    return response.json()["data"]


def _login(client, email):
    response = client.post("/api/auth/login", json={"email": email, "password": PASSWORD})
    return response.status_code, {"Authorization": f"Bearer {response.json().get('token')}"}


def test_added_doctor_belongs_to_roster_and_can_log_in(client, signup_organization):
    organization, org_headers = signup_organization()
    doctor = _add_doctor(client, org_headers, specialty="Hepatology")
    assert doctor["organization"]["id"] == organization["id"]

    status, doctor_headers = _login(client, "cuddy@clinic.io")
    assert status == 200
    me = client.get("/api/auth/me", headers=doctor_headers).json()["data"]
    assert me["organization"]["id"] == organization["id"]

    roster = client.get("/api/organization/doctors", headers=org_headers).json()
    assert roster["count"] == 1
    assert roster["data"][0]["patients"] == []


def test_removing_doctor_only_clears_reference(client, db, signup_organization, upload):
    _, org_headers = signup_organization()
    doctor = _add_doctor(client, org_headers)
    _, doctor_headers = _login(client, "cuddy@clinic.io")
    upload(doctor_headers, patient_name="Jane Doe")

    response = client.delete(f"/api/organization/doctors/{doctor['id']}", headers=org_headers)
    assert response.status_code == 200

    db.expire_all()
    stored = db.get(Doctor, doctor["id"])
    assert stored is not None
    assert stored.organization_id is None
    assert len(stored.patients) == 1
    assert db.query(MedicalImage).filter(MedicalImage.doctor_id == doctor["id"]).count() == 1
    assert _login(client, "cuddy@clinic.io")[0] == 200
    assert client.get("/api/organization/doctors", headers=org_headers).json()["count"] == 0


def test_organization_cannot_touch_another_roster(client, signup_organization, signup_doctor):
    _, first_headers = signup_organization()
    _, second_headers = signup_organization(email="admin@other.io", name="Other Hospital")
    doctor = _add_doctor(client, first_headers)
    independent, _ = signup_doctor()

    assert client.delete(f"/api/organization/doctors/{doctor['id']}", headers=second_headers).status_code == 404
    assert client.delete(f"/api/organization/doctors/{independent['id']}", headers=second_headers).status_code == 404


def test_role_gates(client, signup_organization, signup_doctor):
    _, org_headers = signup_organization()
    _, doctor_headers = signup_doctor()

    response = client.get("/api/organization/dashboard", headers=doctor_headers)
    assert response.status_code == 403
    assert response.json()["message"] == "Organization account required"
    assert client.get("/api/doctor/dashboard", headers=org_headers).status_code == 403
    assert client.get("/api/organization/all", headers=doctor_headers).status_code == 200


def test_dashboard_and_analytics_with_two_doctors(client, signup_organization, upload):
    _, org_headers = signup_organization()
    active = _add_doctor(client, org_headers, full_name="Active Doctor")
    idle = _add_doctor(client, org_headers, email="idle@clinic.io", full_name="Idle Doctor")
    _, active_headers = _login(client, "cuddy@clinic.io")
    for name in ("Jane Doe", "Jane Doe", "John Smith"):
        upload(active_headers, patient_name=name)

    dashboard = client.get("/api/organization/dashboard", headers=org_headers).json()["data"]
    assert dashboard["stats"]["totalDoctors"] == 2
    assert dashboard["stats"]["totalRecordsMonth"] == 3
    assert dashboard["stats"]["totalRecordsToday"] == 3

    result = client.get("/api/organization/analytics?days=30", headers=org_headers).json()["data"]
    assert result["totalPatients"] == 2
    assert [row["doctorId"] for row in result["doctorActivity"]] == [active["id"], idle["id"]]
    assert len(result["monthlyTrends"]) == 6
    assert result["timeRangeDays"] == 30

    assert client.get("/api/organization/analytics?days=0", headers=org_headers).status_code == 400


def test_assign_patient_rules(client, signup_organization, signup_doctor):
    _, org_headers = signup_organization()
    roster_doctor = _add_doctor(client, org_headers)
    outsider, outsider_headers = signup_doctor()
    patient_id = client.post("/api/patients", headers=org_headers, json={"fullName": "Jane Doe"}).json()["data"]["id"]

    body = {"patientId": patient_id, "doctorId": roster_doctor["id"]}
    assert client.put("/api/doctor/assign-patient", headers=org_headers, json=body).status_code == 200
    assert client.put("/api/doctor/assign-patient", headers=org_headers, json=body).status_code == 400

    foreign = {"patientId": patient_id, "doctorId": outsider["id"]}
    assert client.put("/api/doctor/assign-patient", headers=org_headers, json=foreign).status_code == 403
    assert client.put("/api/doctor/assign-patient", headers=org_headers,
                      json={"patientId": patient_id}).status_code == 400

    assert client.put("/api/doctor/assign-patient", headers=outsider_headers, json=body).status_code == 403
    own = client.put("/api/doctor/assign-patient", headers=outsider_headers, json={"patientId": patient_id})
    assert own.status_code == 200
    assert client.put("/api/doctor/assign-patient", headers=outsider_headers,
                      json={"patientId": 9999}).status_code == 404

    profile = client.get(f"/api/doctor/profile/{roster_doctor['id']}", headers=outsider_headers).json()["data"]
    assert [p["fullName"] for p in profile["patients"]] == ["Jane Doe"]
    assert profile["patientCount"] == 1


def test_profile_update_and_email_uniqueness(client, signup_organization, signup_doctor):
    _, org_headers = signup_organization()
    signup_doctor(email="taken@clinic.io")

    response = client.put("/api/organization/profile", headers=org_headers, json={"email": "taken@clinic.io"})
    assert response.status_code == 400

    response = client.put("/api/organization/profile", headers=org_headers,
                          json={"name": "Renamed Hospital", "type": "research"})
    assert response.status_code == 200
    assert response.json()["data"]["name"] == "Renamed Hospital"
    assert response.json()["data"]["type"] == "research"

    profile = client.get("/api/organization/profile", headers=org_headers).json()["data"]
    assert profile["organization"]["name"] == "Renamed Hospital"


def test_deleting_organization_detaches_roster(client, db, signup_organization):
    _, org_headers = signup_organization()
    first = _add_doctor(client, org_headers)
    second = _add_doctor(client, org_headers, email="idle@clinic.io", full_name="Idle Doctor")

    response = client.delete("/api/organization/profile", headers=org_headers)
    assert response.status_code == 200
    assert response.json()["data"]["detachedDoctors"] == 2

    db.expire_all()
    assert db.get(Doctor, first["id"]).organization_id is None
    assert db.get(Doctor, second["id"]).organization_id is None
    assert _login(client, "admin@hospital.io")[0] == 401
    assert client.get("/api/organization/profile", headers=org_headers).status_code == 401


def test_organization_patient_rollup(client, signup_organization, signup_doctor, upload):
    _, org_headers = signup_organization()
    _add_doctor(client, org_headers)
    _, roster_headers = _login(client, "cuddy@clinic.io")
    _, outsider_headers = signup_doctor()
    upload(roster_headers, patient_name="Jane Doe")
    upload(outsider_headers, patient_name="John Smith")

    patients = client.get("/api/organization/patients", headers=org_headers).json()
    assert [p["fullName"] for p in patients["data"]] == ["Jane Doe"]
    assert patients["pagination"]["totalRecords"] == 1
