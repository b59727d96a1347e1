ENTRY = {
    "teacher": "T1",
    "subject": "SUB1",
    "classroom": "R1",
    "semester": "S1",
    "dayOfWeek": "Monday",
    "startTime": "10:00",
    "endTime": "10:45",
}


def propose(client, headers, **overrides):
    return client.post("/api/timetables", json={**ENTRY, **overrides}, headers=headers)


def test_propose_entry_returns_stored_entry(client, admin_headers):
    response = propose(client, admin_headers)

    assert response.status_code == 201
    body = response.json()["timetable"]
    assert body["id"]
    assert body["classroom"] == "R1"
    assert body["dayOfWeek"] == "Monday"
    assert body["startTime"] == "10:00"
    assert body["isActive"] is True
    assert body["createdAt"]


def test_classroom_conflict_returns_blocking_entry(client, admin_headers):
    first = propose(client, admin_headers).json()["timetable"]

    response = propose(client, admin_headers, teacher="T2", endTime="11:30")

    assert response.status_code == 409
    payload = response.json()
    assert payload["details"]["axis"] == "classroom"
    assert payload["details"]["conflict"]["id"] == first["id"]
    assert "classroom" in payload["message"]


def test_teacher_conflict_is_distinguished(client, headers_for):
    hod = headers_for("hod", "hod-1")
    first = propose(client, hod).json()["timetable"]

    response = propose(client, hod, classroom="R2")

    assert response.status_code == 409
    assert response.json()["details"]["axis"] == "teacher"
    assert response.json()["details"]["conflict"]["id"] == first["id"]


def test_back_to_back_entries_are_accepted(client, admin_headers):
    assert propose(client, admin_headers).status_code == 201
    assert propose(client, admin_headers, startTime="10:45", endTime="11:30").status_code == 201


def test_invalid_time_range_and_missing_reference(client, admin_headers):
    bad_range = propose(client, admin_headers, startTime="11:30", endTime="10:00")
    assert bad_range.status_code == 400
    assert "endTime" in bad_range.json()["message"]

    missing = propose(client, admin_headers, subject="")
    assert missing.status_code == 400
    assert missing.json()["details"]["fields"] == ["subject"]

    bad_day = propose(client, admin_headers, dayOfWeek="Sunday")
    assert bad_day.status_code == 422


def test_write_routes_require_scheduling_role(client, teacher_headers):
    assert propose(client, teacher_headers).status_code == 403
    assert client.put(
        "/api/timetables", json={"timetables": [{"_id": "x", "subject": "S"}]}, headers=teacher_headers
    ).status_code == 403
    assert client.post("/api/timetables/x/deactivate", headers=teacher_headers).status_code == 403


def test_requests_without_token_are_refused(client):
    assert client.get("/api/timetables").status_code in {401, 403}
    assert client.get("/api/timetables", headers={"Authorization": "Bearer nope"}).status_code == 401


def test_list_entries_with_filters(client, admin_headers, teacher_headers):
    propose(client, admin_headers)
    propose(client, admin_headers, teacher="T2", classroom="R2")
    propose(client, admin_headers, dayOfWeek="Tuesday")

    everything = client.get("/api/timetables", headers=teacher_headers)
    assert everything.status_code == 200
    assert len(everything.json()["timetables"]) == 3

    filtered = client.get(
        "/api/timetables",
        params={"classroom": "R1", "day": "Monday", "semester": "S1"},
        headers=teacher_headers,
    )
    assert [item["teacher"] for item in filtered.json()["timetables"]] == ["T1"]

    invalid = client.get("/api/timetables", params={"day": "Funday"}, headers=teacher_headers)
    assert invalid.status_code == 400


def test_batch_update_reports_each_item(client, admin_headers):
    first = propose(client, admin_headers, startTime="10:00", endTime="11:30").json()["timetable"]
    second = propose(client, admin_headers, teacher="T2", startTime="12:15", endTime="13:00").json()["timetable"]

    response = client.put(
        "/api/timetables",
        json={
            "timetables": [
                {"_id": second["id"], "startTime": "10:45", "endTime": "12:15"},
                {"_id": "missing", "subject": "SUB2"},
                {"id": first["id"], "endTime": "10:00"},
            ]
        },
        headers=admin_headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert [item["status"] for item in body["results"]] == ["updated", "not_found", "invalid"]
    # Overlaps introduced by batch updates are not re-checked.
    assert body["results"][0]["timetable"]["startTime"] == "10:45"
    assert body["updated"] == 1
    assert body["failed"] == 2


def test_batch_update_requires_items(client, admin_headers):
    response = client.put("/api/timetables", json={"timetables": []}, headers=admin_headers)
    assert response.status_code == 422


def test_deactivate_frees_slot_and_hides_entry(client, admin_headers):
    entry = propose(client, admin_headers).json()["timetable"]

    response = client.post(f"/api/timetables/{entry['id']}/deactivate", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["timetable"]["isActive"] is False

    assert client.get("/api/timetables", headers=admin_headers).json()["timetables"] == []
    inactive = client.get("/api/timetables", params={"includeInactive": "true"}, headers=admin_headers)
    assert len(inactive.json()["timetables"]) == 1

    assert propose(client, admin_headers).status_code == 201


def test_deactivate_unknown_entry(client, admin_headers):
    response = client.post("/api/timetables/missing/deactivate", headers=admin_headers)
    assert response.status_code == 404


def test_upcoming_classes_for_notification_job(client, admin_headers, headers_for):
    propose(client, admin_headers)
    propose(client, admin_headers, startTime="11:30", endTime="12:15")

    response = client.get(
        "/api/timetables/upcoming",
        params={"semester": "S1", "now": "2026-10-19T09:50:00"},
        headers=admin_headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["day"] == "Monday"
    assert body["windowStart"] == "09:50"
    assert body["windowEnd"] == "10:20"
    assert [item["startTime"] for item in body["timetables"]] == ["10:00"]

    wider = client.get(
        "/api/timetables/upcoming",
        params={"semester": "S1", "now": "2026-10-19T09:50:00", "horizonMinutes": 120},
        headers=admin_headers,
    )
    assert sorted(item["startTime"] for item in wider.json()["timetables"]) == ["10:00", "11:30"]

    assert client.get("/api/timetables/upcoming", headers=headers_for("hod", "h")).status_code == 403


def test_principal_can_propose(client, headers_for):
    response = propose(client, headers_for("principal", "p-1"))
    assert response.status_code == 201
