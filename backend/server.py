import math
import os
import sys
import time
import threading
from functools import wraps

# Ensure backend/ is on sys.path so sibling imports work
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

import requests
from flask import Flask, g, jsonify, request
from werkzeug.exceptions import HTTPException

import config
import backend_client
from backend_client import BackendError, CancelToken
from data_loader import load_data, iter_concrete_courses
from eligibility import StatusChangeRejected, build_course_index
from listings import (
    describe_discipline,
    filter_students,
    filter_teachers,
    flatten_disciplines,
    search_disciplines,
)
from ranking import build_ranking, cohort_year
from schedule import DAYS, TIME_SLOTS, fetch_schedule, schedule_rows
from student_session import StudentSession

app = Flask(__name__)
app.json.ensure_ascii = False

DATA_PATH = config.DATA_PATH
_data_lock = threading.Lock()
_data_mtime = None


def _data_file_mtime(path: str):
    try:
        if os.path.isdir(path):
            mtimes = [
                os.path.getmtime(os.path.join(path, f))
                for f in os.listdir(path)
                if f.endswith(".csv")
            ]
            return max(mtimes) if mtimes else None
        return os.path.getmtime(path)
    except OSError:
        return None


# ── Startup data load ──────────────────────────────────────────────────────────
try:
    _data = load_data(DATA_PATH)
    _data_mtime = _data_file_mtime(DATA_PATH)
    print(f"[OK] Loaded {len(_data['catalog_ids'])} courses from {DATA_PATH}")
except FileNotFoundError:
    # Stale DATA_PATH: fall back to the catalog shipped with the repo.
    if DATA_PATH != config.DEFAULT_DATA_PATH and os.path.exists(config.DEFAULT_DATA_PATH):
        print(
            f"[WARN] DATA_PATH not found ({DATA_PATH}); "
            f"falling back to default catalog ({config.DEFAULT_DATA_PATH}).",
            file=sys.stderr,
        )
        DATA_PATH = config.DEFAULT_DATA_PATH
        _data = load_data(DATA_PATH)
        _data_mtime = _data_file_mtime(DATA_PATH)
        print(f"[OK] Loaded {len(_data['catalog_ids'])} courses from {DATA_PATH}")
    else:
        print(f"[FATAL] Catalog not found: {DATA_PATH}", file=sys.stderr)
        sys.exit(1)
except Exception as exc:
    print(f"[FATAL] Failed to load catalog: {exc}", file=sys.stderr)
    sys.exit(1)


def _reload_data_if_changed(force: bool = False) -> bool:
    """
    Hot-reload the catalog when DATA_PATH changes on disk.

    Returns True when a reload occurred, else False.
    """
    global _data, _data_mtime

    candidate_mtime = _data_file_mtime(DATA_PATH)
    if not force:
        if candidate_mtime is None:
            return False
        if _data_mtime is not None and candidate_mtime <= _data_mtime:
            return False

    with _data_lock:
        latest_mtime = _data_file_mtime(DATA_PATH)
        if not force:
            if latest_mtime is None:
                return False
            if _data_mtime is not None and latest_mtime <= _data_mtime:
                return False

        try:
            new_data = load_data(DATA_PATH)
        except Exception as exc:
            print(f"[WARN] Catalog reload failed; keeping previous catalog: {exc}", file=sys.stderr)
            return False

        _data = new_data
        _data_mtime = latest_mtime if latest_mtime is not None else candidate_mtime
        print(f"[OK] Reloaded {len(new_data['catalog_ids'])} courses from {DATA_PATH}")
        return True


def _refresh_data_if_needed() -> None:
    try:
        _reload_data_if_changed()
    except Exception as exc:
        print(f"[WARN] Catalog reload check failed: {exc}", file=sys.stderr)


def _new_session() -> StudentSession:
    """Fresh application state bound to the current catalog snapshot."""
    session = StudentSession(client=backend_client)
    session.set_catalog(_data["courses"])
    session.set_course_id_mapping(_data["course_id_mapping"])
    return session


def _courses_by_discipline() -> dict[str, dict]:
    return {
        course["discipline_id"]: course
        for course in iter_concrete_courses(_data["courses"])
        if course.get("discipline_id")
    }


# -- Request timing / security headers ---------------------------------------
@app.before_request
def _start_request_timer():
    g._request_start_time = time.perf_counter()


@app.after_request
def _add_security_headers(response):
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["Referrer-Policy"] = "same-origin"

    started = getattr(g, "_request_start_time", None)
    if started is not None:
        duration_ms = (time.perf_counter() - started) * 1000.0
        if duration_ms >= config.SLOW_REQUEST_LOG_MS:
            endpoint = request.endpoint or "unknown"
            print(
                f"[SLOW] {request.method} {request.path} "
                f"endpoint={endpoint} status={response.status_code} duration_ms={duration_ms:.1f}"
            )
    return response


# ── 500 handler ────────────────────────────────────────────────────────────────
@app.errorhandler(Exception)
def handle_unexpected_error(e):
    if isinstance(e, HTTPException):
        return jsonify({"error": e.description}), e.code
    print(f"[WARN] Unhandled error on {request.method} {request.path}: {e!r}", file=sys.stderr)
    return jsonify({"error": "An unexpected server error occurred."}), 500


# -- Health endpoint --------------------------------------------------------
@app.route("/health", methods=["GET"])
def health_endpoint():
    return jsonify({
        "status": "ok",
        "version": "1.0.0",
        "catalog_loaded": bool(_data),
        "backend_api_url": config.BACKEND_API_URL,
    })


# ── Proxy helpers ──────────────────────────────────────────────────────────────
def _missing_params(**params):
    """400 response if any required path parameter is blank, else None."""
    missing = [name for name, value in params.items() if not str(value or "").strip()]
    if missing:
        return jsonify({"error": f"{', '.join(missing)} {'is' if len(missing) == 1 else 'are'} required"}), 400
    return None


def _proxy(method: str, path: str, action: str, json_body=None, empty_status: int | None = None):
    """
    Forward one request upstream.

    Upstream non-success -> same status with {"error": <upstream text>}.
    Upstream success -> 200 with the upstream JSON, or {} when the body is
    not JSON. Transport failure -> 500. `empty_status` answers success with an empty
    body and that status instead of the upstream JSON.
    """
    try:
        upstream = backend_client.forward(method, path, json_body=json_body)
    except requests.RequestException as exc:
        print(f"[WARN] Proxy error while {action}: {exc}", file=sys.stderr)
        return jsonify({"error": f"Internal Server Error while {action} via proxy"}), 500

    if empty_status is not None:
        if upstream.status_code != empty_status:
            status = upstream.status_code if upstream.status_code >= 400 else 502
            return jsonify({"error": upstream.text}), status
        return "", empty_status

    if not upstream.ok:
        return jsonify({"error": upstream.text}), upstream.status_code
    try:
        data = upstream.json()
    except ValueError:
        data = {}
    return jsonify(data)


# ── Proxy routes: disciplines ──────────────────────────────────────────────────
@app.route("/api/disciplines/actions/scrape-whatsapp", methods=["POST"])
def scrape_whatsapp():
    return _proxy("POST", "disciplines/actions/scrape-whatsapp", "proxying scrape action", empty_status=202)


@app.route("/api/disciplines/actions/scrape", methods=["POST"])
def scrape_disciplines():
    return _proxy("POST", "disciplines/actions/scrape", "proxying scrape action", empty_status=202)


@app.route("/api/disciplines", methods=["GET"])
def list_disciplines():
    return _proxy("GET", "disciplines", "fetching disciplines")


@app.route("/api/disciplines/<discipline_id>", methods=["GET"])
def get_discipline(discipline_id):
    error = _missing_params(disciplineId=discipline_id)
    if error:
        return error
    return _proxy("GET", f"disciplines/{discipline_id}", "fetching discipline")


@app.route("/api/disciplines/<discipline_id>/classes/<class_number>", methods=["PATCH"])
def update_discipline_class(discipline_id, class_number):
    error = _missing_params(disciplineId=discipline_id, classNumber=class_number)
    if error:
        return error
    body = request.get_json(silent=True)
    if not isinstance(body, dict) or not isinstance(body.get("whatsappGroup"), str) or not body["whatsappGroup"].strip():
        return jsonify({"error": "whatsappGroup must be a non-empty string"}), 400
    return _proxy(
        "PATCH",
        f"disciplines/{discipline_id}/classes/{class_number}",
        "updating class",
        json_body={"whatsappGroup": body["whatsappGroup"].strip()},
    )


# ── Proxy routes: students ─────────────────────────────────────────────────────
@app.route("/api/students", methods=["GET"])
def list_students():
    return _proxy("GET", "students", "fetching students")


@app.route("/api/students/search", methods=["GET"])
def search_students():
    students = backend_client.get_all_students()
    return jsonify({"students": filter_students(students, request.args.get("q"))})


@app.route("/api/students/<student_id>", methods=["GET"])
def get_student(student_id):
    """Fetch a student; an upstream miss creates it and answers 201."""
    error = _missing_params(studentId=student_id)
    if error:
        return error
    try:
        student, created = backend_client.get_student(student_id)
    except BackendError as exc:
        return jsonify({"error": exc.message}), exc.status_code
    except requests.RequestException as exc:
        print(f"[WARN] Proxy error while fetching student: {exc}", file=sys.stderr)
        return jsonify({"error": "Internal Server Error while fetching student via proxy"}), 500
    return jsonify(student), 201 if created else 200


@app.route("/api/students/<student_id>", methods=["PATCH"])
def update_student(student_id):
    error = _missing_params(studentId=student_id)
    if error:
        return error
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        return jsonify({"error": "Request body must be a JSON object"}), 400
    profile = {k: body[k] for k in ("name", "lastName") if isinstance(body.get(k), str)}
    if not profile:
        return jsonify({"error": "name or lastName is required"}), 400
    return _proxy("PATCH", f"students/{student_id}", "updating student", json_body=profile)


@app.route("/api/students/<student_id>/disciplines", methods=["GET"])
def get_student_disciplines(student_id):
    error = _missing_params(studentId=student_id)
    if error:
        return error
    return _proxy("GET", f"students/{student_id}/disciplines", "fetching student disciplines")


@app.route("/api/students/<student_id>/current-disciplines/<discipline_id>", methods=["PUT"])
def put_current_discipline(student_id, discipline_id):
    error = _missing_params(studentId=student_id, disciplineId=discipline_id)
    if error:
        return error
    body = request.get_json(silent=True)
    class_number = body.get("classNumber") if isinstance(body, dict) else None
    if (
        isinstance(class_number, bool)
        or not isinstance(class_number, (int, float))
        or not math.isfinite(class_number)
    ):
        return jsonify({"error": "classNumber must be a finite number"}), 400
    return _proxy(
        "PUT",
        f"students/{student_id}/current-disciplines/{discipline_id}",
        "updating",
        json_body={"classNumber": class_number},
    )


@app.route("/api/students/<student_id>/current-disciplines/<discipline_id>", methods=["DELETE"])
def delete_current_discipline(student_id, discipline_id):
    error = _missing_params(studentId=student_id, disciplineId=discipline_id)
    if error:
        return error
    return _proxy("DELETE", f"students/{student_id}/current-disciplines/{discipline_id}", "updating")


@app.route(
    "/api/students/<student_id>/completed-disciplines/<discipline_id>",
    methods=["GET", "PUT", "DELETE"],
)
def completed_discipline(student_id, discipline_id):
    error = _missing_params(studentId=student_id, disciplineId=discipline_id)
    if error:
        return error
    return _proxy(
        request.method,
        f"students/{student_id}/completed-disciplines/{discipline_id}",
        "updating" if request.method != "GET" else "fetching completed discipline",
    )


# ── Proxy routes: teachers ─────────────────────────────────────────────────────
@app.route("/api/teachers", methods=["GET"])
def list_teachers():
    return _proxy("GET", "teachers", "fetching teachers")


@app.route("/api/teachers/search", methods=["GET"])
def search_teachers():
    teachers = backend_client.get_all_teachers()
    return jsonify({"teachers": filter_teachers(teachers, request.args.get("q"))})


# ── Catalog ────────────────────────────────────────────────────────────────────
@app.route("/api/courses", methods=["GET"])
def get_courses():
    _refresh_data_if_needed()
    if not _data:
        return jsonify({"error": "Data not loaded"}), 500
    return jsonify({
        "courses": _data["courses"],
        "course_id_mapping": _data["course_id_mapping"],
    })


@app.route("/api/disciplines-list", methods=["GET"])
def get_disciplines_list():
    _refresh_data_if_needed()
    if not _data:
        return jsonify({"error": "Data not loaded"}), 500
    disciplines = search_disciplines(flatten_disciplines(_data["courses"]), request.args.get("q"))
    return jsonify({"disciplines": disciplines})


@app.route("/api/courses/<course_id>/detail", methods=["GET"])
def get_course_detail(course_id):
    """Catalog course plus its upstream classes, with teacher names and times formatted."""
    _refresh_data_if_needed()
    course_id = course_id.strip().upper()
    course = build_course_index(_data["courses"]).get(course_id)
    if course is None:
        return jsonify({"error": f"{course_id} is not in the course catalog.", "reason": "unknown_course"}), 404
    if course.get("is_elective_group") or not course.get("discipline_id"):
        return jsonify({
            "error": f"{course['name']} is an elective group and has no classes of its own.",
            "reason": "elective_group",
        }), 400
    try:
        detail = backend_client.get_discipline(course["discipline_id"])
    except BackendError as exc:
        return jsonify({"error": exc.message}), exc.status_code
    except requests.RequestException as exc:
        print(f"[WARN] Proxy error while fetching discipline: {exc}", file=sys.stderr)
        return jsonify({"error": "Internal Server Error while fetching discipline via proxy"}), 500
    return jsonify(describe_discipline(course, detail))


# ── Orchestration routes ───────────────────────────────────────────────────────
def _backend_errors_as_json(view):
    """Map domain and upstream errors of orchestration views onto JSON responses."""
    @wraps(view)
    def wrapper(*args, **kwargs):
        try:
            return view(*args, **kwargs)
        except StatusChangeRejected as exc:
            status = 404 if exc.reason == "unknown_course" else 400
            return jsonify({"error": str(exc), "reason": exc.reason}), status
        except BackendError as exc:
            return jsonify({"error": exc.message}), exc.status_code
        except requests.RequestException as exc:
            print(f"[WARN] Backend unreachable on {request.path}: {exc}", file=sys.stderr)
            return jsonify({"error": "Internal Server Error while contacting the backend"}), 500
    return wrapper


def _progress_payload(session: StudentSession) -> dict:
    return {
        "student": session.student,
        "created": session.student_created,
        "statuses": session.statuses,
        "display_statuses": session.display_statuses(),
        "requirements": session.requirements(),
        "total_completed_credits": session.total_completed_credits(),
    }


@app.route("/api/progress/<student_id>", methods=["GET"])
@_backend_errors_as_json
def get_progress(student_id):
    error = _missing_params(studentId=student_id)
    if error:
        return error
    _refresh_data_if_needed()
    session = _new_session()
    session.load_student(student_id)
    return jsonify(_progress_payload(session))


@app.route("/api/progress/<student_id>/courses/<course_id>/status", methods=["POST"])
@_backend_errors_as_json
def update_progress_status(student_id, course_id):
    error = _missing_params(studentId=student_id, courseId=course_id)
    if error:
        return error
    body = request.get_json(silent=True)
    if not isinstance(body, dict) or not isinstance(body.get("status"), str):
        return jsonify({"error": "status is required"}), 400

    _refresh_data_if_needed()
    session = _new_session()
    session.load_student(student_id)
    changed = session.update_course_status(
        course_id.strip().upper(),
        body["status"].strip().upper(),
        class_number=body.get("classNumber"),
    )
    payload = _progress_payload(session)
    payload["changed"] = changed
    return jsonify(payload)


@app.route("/api/can-take/<student_id>/<course_id>", methods=["GET"])
@_backend_errors_as_json
def can_take_endpoint(student_id, course_id):
    session = _new_session()
    session.load_student(student_id)
    course_id = course_id.strip().upper()
    result = session.can_take(course_id)
    return jsonify({
        "course_id": course_id,
        "status": session.status_of(course_id),
        "total_completed_credits": session.total_completed_credits(),
        **result,
    })


@app.route("/api/schedule/<student_id>", methods=["GET"])
@_backend_errors_as_json
def get_schedule(student_id):
    session = _new_session()
    session.load_student(student_id)
    cancel_token = CancelToken()
    deadline = threading.Timer(config.SCHEDULE_FETCH_DEADLINE_SECONDS, cancel_token.cancel)
    deadline.daemon = True
    deadline.start()
    try:
        grid = fetch_schedule(
            (session.student or {}).get("currentDisciplines"),
            _courses_by_discipline(),
            backend_client.get_discipline,
            cancel_token=cancel_token,
            max_workers=config.SCHEDULE_FETCH_WORKERS,
        )
    finally:
        deadline.cancel()
    if grid is None:
        print(
            f"[WARN] Schedule fetch for {student_id} exceeded "
            f"{config.SCHEDULE_FETCH_DEADLINE_SECONDS:.1f}s; discarding partial results.",
            file=sys.stderr,
        )
        return jsonify({"error": "Timed out fetching class schedules"}), 504
    cells = [
        {"day": day, "slot": slot, "courseId": cell["course"]["id"],
         "name": cell["course"]["name"], "classNumber": cell["classNumber"]}
        for day, slots in grid.items()
        for slot, cell in slots.items()
    ]
    return jsonify({
        "days": DAYS,
        "time_slots": TIME_SLOTS,
        "rows": schedule_rows(grid),
        "cells": cells,
        "empty": not cells,
        "total_completed_credits": session.total_completed_credits(),
    })


@app.route("/api/ranking/<student_id>", methods=["GET"])
def get_ranking(student_id):
    students = backend_client.get_all_students()
    return jsonify({
        "cohort_year": cohort_year(student_id),
        "ranking": build_ranking(students, student_id),
    })


# -- API catch-all (404 for unknown /api/* routes) -------------------
@app.route("/api/<path:rest>", methods=["GET", "POST", "PUT", "DELETE", "PATCH"])
def api_catch_all(rest):
    return jsonify({"error": f"/api/{rest} not found"}), 404


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 5000))
    debug = os.environ.get("FLASK_DEBUG", "1") == "1"
    app.run(host="0.0.0.0", port=port, debug=debug)
