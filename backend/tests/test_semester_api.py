def create(client, headers, **overrides):
    payload = {"name": "Odd 2026", "startDate": "2026-07-01", "endDate": "2026-12-01", **overrides}
    return client.post("/api/semesters", json=payload, headers=headers)


def test_semester_lifecycle(client, admin_headers, teacher_headers):
    first = create(client, admin_headers, name="Even 2026", startDate="2026-01-05", endDate="2026-05-30", isActive=True)
    assert first.status_code == 201
    assert first.json()["semester"]["isActive"] is True

    second = create(client, admin_headers).json()["semester"]
    activated = client.post(f"/api/semesters/{second['id']}/activate", headers=admin_headers)
    assert activated.status_code == 200
    assert activated.json()["semester"]["isActive"] is True

    listing = client.get("/api/semesters", headers=teacher_headers).json()["semesters"]
    assert [item["name"] for item in listing] == ["Odd 2026", "Even 2026"]
    assert [item["isActive"] for item in listing] == [True, False]


def test_semester_validation_and_permissions(client, admin_headers, teacher_headers):
    assert create(client, admin_headers, endDate="2026-06-01").status_code == 400
    assert create(client, teacher_headers).status_code == 403
    assert client.post("/api/semesters/missing/activate", headers=admin_headers).status_code == 404
