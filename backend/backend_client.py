"""
HTTP client for the remote progress backend.

Proxy routes use `forward()` and translate the raw response themselves;
orchestration code uses the typed helpers, which raise BackendError on
non-2xx answers and let requests.RequestException propagate on transport
failures.
"""
import sys
import threading

import requests

import config

_JSON_HEADERS = {"Content-Type": "application/json"}


class BackendError(Exception):
    """Upstream answered with a non-success status."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class CancelToken:
    """Cancellation flag shared between a view and its in-flight fetches."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


def _url(path: str) -> str:
    return f"{config.BACKEND_API_URL}/{path.lstrip('/')}"


def forward(method: str, path: str, json_body=None, params=None) -> requests.Response:
    """Send one request upstream and return the raw response."""
    kwargs = {"headers": _JSON_HEADERS, "timeout": config.BACKEND_TIMEOUT_SECONDS}
    if json_body is not None:
        kwargs["json"] = json_body
    if params:
        kwargs["params"] = params
    return requests.request(method, _url(path), **kwargs)


def _json_or_empty(response: requests.Response):
    try:
        return response.json()
    except ValueError:
        return {}


def _call(method: str, path: str, json_body=None, ok_statuses=None):
    response = forward(method, path, json_body=json_body)
    ok = response.ok if ok_statuses is None else response.status_code in ok_statuses
    if not ok:
        raise BackendError(response.status_code, response.text)
    return _json_or_empty(response)


# ── Students ───────────────────────────────────────────────────────────────────
def create_student(student_id: str, name: str = "", last_name: str = "") -> dict:
    return _call("POST", "students", {"studentId": student_id, "name": name, "lastName": last_name})


def get_student(student_id: str) -> tuple[dict, bool]:
    """
    Fetch a student, creating it upstream on a miss.

    Returns (student, created).
    """
    response = forward("GET", f"students/{student_id}")
    if response.status_code == 404:
        print(f"[INFO] Student {student_id} not found upstream; creating.")
        return create_student(student_id), True
    if not response.ok:
        raise BackendError(response.status_code, response.text)
    return _json_or_empty(response), False


def _get_list_or_empty(path: str, label: str) -> list:
    try:
        response = forward("GET", path)
    except requests.RequestException as exc:
        print(f"[WARN] Error fetching {label}: {exc}", file=sys.stderr)
        return []
    if not response.ok:
        print(f"[WARN] Failed to fetch {label}: HTTP {response.status_code}", file=sys.stderr)
        return []
    data = _json_or_empty(response)
    return data if isinstance(data, list) else []


def get_all_students() -> list[dict]:
    return _get_list_or_empty("students", "students")


def get_all_teachers() -> list[dict]:
    return _get_list_or_empty("teachers", "teachers")


# ── Student disciplines ────────────────────────────────────────────────────────
def put_completed_discipline(student_id: str, discipline_id: str) -> dict:
    return _call("PUT", f"students/{student_id}/completed-disciplines/{discipline_id}")


def delete_completed_discipline(student_id: str, discipline_id: str) -> dict:
    return _call("DELETE", f"students/{student_id}/completed-disciplines/{discipline_id}")


def put_current_discipline(student_id: str, discipline_id: str, class_number: int) -> dict:
    return _call(
        "PUT",
        f"students/{student_id}/current-disciplines/{discipline_id}",
        {"classNumber": class_number},
    )


def delete_current_discipline(student_id: str, discipline_id: str) -> dict:
    return _call("DELETE", f"students/{student_id}/current-disciplines/{discipline_id}")


# ── Disciplines ────────────────────────────────────────────────────────────────
def get_discipline(discipline_id: str, cancel_token: CancelToken | None = None) -> dict | None:
    """
    Discipline detail including `classes`.

    Returns None if the token was cancelled before the answer arrived.
    """
    if cancel_token is not None and cancel_token.cancelled:
        return None
    data = _call("GET", f"disciplines/{discipline_id}")
    if cancel_token is not None and cancel_token.cancelled:
        return None
    return data
