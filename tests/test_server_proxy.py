"""
Proxy routes: same path shape as the remote backend, translating only
status codes and error bodies.
"""
import json

import pytest
import requests

import backend_client
from backend_fakes import FakeResponse, RecordingForward


@pytest.fixture(scope="module")
def client():
    from server import app
    app.config["TESTING"] = True
    with app.test_client() as c:
        yield c


@pytest.fixture
def upstream(monkeypatch):
    fake = RecordingForward()
    monkeypatch.setattr(backend_client, "forward", fake)
    return fake


def put_json(client, url, payload):
    return client.put(url, data=json.dumps(payload), content_type="application/json")


class TestScrapeWhatsapp:
    def test_accepted_is_forwarded_with_empty_body(self, client, upstream):
        upstream.default = FakeResponse(202)
        resp = client.post("/api/disciplines/actions/scrape-whatsapp")
        assert resp.status_code == 202
        assert resp.data == b""
        assert upstream.calls == [("POST", "disciplines/actions/scrape-whatsapp", None)]

    def test_upstream_error_passes_through(self, client, upstream):
        upstream.default = FakeResponse(503, text="scraper busy")
        resp = client.post("/api/disciplines/actions/scrape-whatsapp")
        assert resp.status_code == 503
        assert resp.get_json() == {"error": "scraper busy"}

    def test_transport_error_is_500(self, client, upstream):
        upstream.error = requests.ConnectionError("down")
        resp = client.post("/api/disciplines/actions/scrape-whatsapp")
        assert resp.status_code == 500
        assert resp.get_json()["error"].startswith("Internal Server Error")

    def test_discipline_scrape(self, client, upstream):
        upstream.default = FakeResponse(202)
        assert client.post("/api/disciplines/actions/scrape").status_code == 202


class TestCurrentDisciplines:
    URL = "/api/students/202110012345/current-disciplines/IME04-10817"

    def test_string_class_number_rejected_without_upstream_call(self, client, upstream):
        resp = put_json(client, self.URL, {"classNumber": "3"})
        assert resp.status_code == 400
        assert "error" in resp.get_json()
        assert upstream.calls == []

    @pytest.mark.parametrize("payload", [{}, {"classNumber": None}, {"classNumber": True}])
    def test_other_invalid_bodies(self, client, upstream, payload):
        assert put_json(client, self.URL, payload).status_code == 400
        assert upstream.calls == []

    @pytest.mark.parametrize("raw", ["Infinity", "-Infinity", "NaN", "1e400"])
    def test_non_finite_class_number_rejected(self, client, upstream, raw):
        resp = client.put(self.URL, data='{"classNumber": ' + raw + '}', content_type="application/json")
        assert resp.status_code == 400
        assert upstream.calls == []

    def test_float_class_number_forwarded(self, client, upstream):
        resp = put_json(client, self.URL, {"classNumber": 2.0})
        assert resp.status_code == 200
        assert upstream.calls[0][2] == {"classNumber": 2.0}

    def test_not_json_body(self, client, upstream):
        resp = client.put(self.URL, data="not-json", content_type="application/json")
        assert resp.status_code == 400
        assert upstream.calls == []

    def test_put_forwards_class_number(self, client, upstream):
        upstream.default = FakeResponse(200, {"ok": True})
        resp = put_json(client, self.URL, {"classNumber": 3})
        assert resp.status_code == 200
        assert resp.get_json() == {"ok": True}
        assert upstream.calls == [
            ("PUT", "students/202110012345/current-disciplines/IME04-10817", {"classNumber": 3}),
        ]

    def test_put_empty_upstream_body_returns_empty_object(self, client, upstream):
        upstream.default = FakeResponse(204)
        resp = put_json(client, self.URL, {"classNumber": 3})
        assert resp.status_code == 200
        assert resp.get_json() == {}

    def test_put_upstream_error(self, client, upstream):
        upstream.default = FakeResponse(404, text="Student not found")
        resp = put_json(client, self.URL, {"classNumber": 3})
        assert resp.status_code == 404
        assert resp.get_json() == {"error": "Student not found"}

    def test_delete_forwards(self, client, upstream):
        resp = client.delete(self.URL)
        assert resp.status_code == 200
        assert upstream.calls == [("DELETE", "students/202110012345/current-disciplines/IME04-10817", None)]

    def test_blank_student_id(self, client, upstream):
        resp = put_json(client, "/api/students/%20/current-disciplines/IME04-10817", {"classNumber": 1})
        assert resp.status_code == 400
        assert upstream.calls == []


class TestCompletedDisciplines:
    URL = "/api/students/202110012345/completed-disciplines/IME04-10817"

    @pytest.mark.parametrize("method", ["GET", "PUT", "DELETE"])
    def test_methods_forwarded(self, client, upstream, method):
        resp = client.open(self.URL, method=method)
        assert resp.status_code == 200
        assert upstream.calls == [(method, "students/202110012345/completed-disciplines/IME04-10817", None)]


class TestStudents:
    def test_existing_student(self, client, upstream):
        upstream.responses[("GET", "students/202110012345")] = FakeResponse(200, {"studentId": "202110012345"})
        resp = client.get("/api/students/202110012345")
        assert resp.status_code == 200
        assert resp.get_json()["studentId"] == "202110012345"

    def test_miss_creates_student(self, client, upstream):
        upstream.responses[("GET", "students/202110012345")] = FakeResponse(404, text="not found")
        upstream.responses[("POST", "students")] = FakeResponse(201, {"studentId": "202110012345"})
        resp = client.get("/api/students/202110012345")
        assert resp.status_code == 201
        assert upstream.calls[-1][0:2] == ("POST", "students")

    def test_disciplines_listing(self, client, upstream):
        upstream.default = FakeResponse(200, {"current": [{"disciplineId": "X", "classNumber": 1}]})
        resp = client.get("/api/students/202110012345/disciplines")
        assert resp.get_json()["current"][0]["disciplineId"] == "X"

    def test_profile_patch_requires_fields(self, client, upstream):
        resp = client.patch("/api/students/202110012345", json={"age": 3})
        assert resp.status_code == 400
        assert upstream.calls == []

    def test_profile_patch(self, client, upstream):
        client.patch("/api/students/202110012345", json={"name": "Ana"})
        assert upstream.calls == [("PATCH", "students/202110012345", {"name": "Ana"})]

    def test_search_swallows_upstream_failure(self, client, upstream):
        upstream.error = requests.Timeout("slow")
        resp = client.get("/api/students/search?q=ana")
        assert resp.status_code == 200
        assert resp.get_json() == {"students": []}


class TestDisciplineClasses:
    URL = "/api/disciplines/IME04-10817/classes/2"

    def test_whatsapp_group_required(self, client, upstream):
        assert client.patch(self.URL, json={}).status_code == 400
        assert upstream.calls == []

    def test_patch_forwarded(self, client, upstream):
        resp = client.patch(self.URL, json={"whatsappGroup": "https://chat.whatsapp.com/abc"})
        assert resp.status_code == 200
        assert upstream.calls == [
            ("PATCH", "disciplines/IME04-10817/classes/2", {"whatsappGroup": "https://chat.whatsapp.com/abc"}),
        ]

    def test_discipline_detail(self, client, upstream):
        upstream.default = FakeResponse(200, {"disciplineId": "IME04-10817", "classes": []})
        assert client.get("/api/disciplines/IME04-10817").get_json()["classes"] == []


class TestMisc:
    def test_unknown_api_route(self, client):
        resp = client.get("/api/nothing-here")
        assert resp.status_code == 404
        assert "error" in resp.get_json()

    def test_health(self, client):
        data = client.get("/health").get_json()
        assert data["status"] == "ok"
        assert data["catalog_loaded"] is True

    def test_security_headers(self, client):
        resp = client.get("/health")
        assert resp.headers["X-Frame-Options"] == "DENY"
