def test_health_endpoints(client):
    for path in ("/health", "/api/health", "/"):
        response = client.get(path)
        assert response.status_code == 200
        assert response.json()["success"] is True


def test_unknown_route_uses_error_envelope(client):
    response = client.get("/api/does-not-exist")
    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Not Found"}
