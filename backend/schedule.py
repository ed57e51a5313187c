import sys
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait

from course_status import current_discipline_id
from normalizer import DAY_LABELS

TIME_SLOTS = [
    "M1", "M2", "M3", "M4", "M5", "M6",
    "T1", "T2", "T3", "T4", "T5",
    "N1", "N2", "N3", "N4", "N5",
]

DAYS = ["Seg", "Ter", "Qua", "Qui", "Sex"]

_CANCEL_POLL_SECONDS = 0.05


def parse_class_times(times) -> list[tuple[str, str]]:
    """
    'SEG N1 N2 QUA N1 N2' -> [('Seg', 'N1'), ('Seg', 'N2'), ('Qua', 'N1'), ('Qua', 'N2')]

    A day code switches the current day; every following token is a slot
    for that day. Tokens before the first day code are ignored. Unknown
    slot ids are kept as-is.
    """
    if not times or not isinstance(times, str):
        return []
    cells: list[tuple[str, str]] = []
    current_day = None
    for token in times.split():
        day = DAY_LABELS.get(token.upper())
        if day:
            current_day = day
        elif current_day:
            cells.append((current_day, token))
    return cells


def normalize_enrollments(current_disciplines) -> list[dict]:
    """Keep only {disciplineId, classNumber} pairs with an integer class number."""
    out: list[dict] = []
    for entry in current_disciplines or []:
        if not isinstance(entry, dict):
            continue
        discipline_id = current_discipline_id(entry)
        class_number = entry.get("classNumber")
        if not discipline_id or isinstance(class_number, bool) or not isinstance(class_number, int):
            continue
        out.append({"disciplineId": discipline_id, "classNumber": class_number})
    return out


def build_schedule(
    enrollments: list[dict],
    details_by_discipline: dict[str, dict | None],
    courses_by_discipline: dict[str, dict],
) -> dict[str, dict[str, dict]]:
    """
    Sparse {day: {slot: {"course": course, "classNumber": n}}} grid.

    Enrollments without detail, without a matching class, or without a
    catalog course are skipped. A second write to the same cell overwrites
    the first (enrollment order).
    """
    grid: dict[str, dict[str, dict]] = {}
    for enrollment in enrollments:
        discipline_id = enrollment["disciplineId"]
        class_number = enrollment["classNumber"]
        detail = details_by_discipline.get(discipline_id)
        if not detail:
            continue
        class_info = next(
            (c for c in detail.get("classes") or [] if c.get("number") == class_number),
            None,
        )
        if not class_info or not class_info.get("times"):
            continue
        course = courses_by_discipline.get(discipline_id)
        if course is None:
            continue
        for day, slot in parse_class_times(class_info["times"]):
            grid.setdefault(day, {})[slot] = {"course": course, "classNumber": class_number}
    return grid


def fetch_discipline_details(
    discipline_ids: list[str],
    fetch_detail,
    cancel_token=None,
    max_workers: int = 8,
) -> dict[str, dict | None] | None:
    """
    Fan out one detail fetch per discipline and wait for all of them.

    A failing fetch logs a warning and maps to None without aborting the
    others. Returns None as soon as the token is cancelled; fetches still in
    flight are abandoned and their results discarded.
    """
    unique_ids = list(dict.fromkeys(discipline_ids))
    if not unique_ids:
        return {}

    def _fetch(discipline_id: str):
        if cancel_token is not None and cancel_token.cancelled:
            return None
        return fetch_detail(discipline_id, cancel_token)

    executor = ThreadPoolExecutor(max_workers=min(max_workers, len(unique_ids)))
    try:
        futures = {d: executor.submit(_fetch, d) for d in unique_ids}
        pending = set(futures.values())
        while pending:
            if cancel_token is not None and cancel_token.cancelled:
                return None
            _done, pending = wait(pending, timeout=_CANCEL_POLL_SECONDS, return_when=FIRST_COMPLETED)
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    if cancel_token is not None and cancel_token.cancelled:
        return None

    results: dict[str, dict | None] = {}
    for discipline_id, future in futures.items():
        try:
            results[discipline_id] = future.result()
        except Exception as exc:
            print(
                f"[WARN] Failed to fetch details for discipline {discipline_id}: {exc}",
                file=sys.stderr,
            )
            results[discipline_id] = None
    return results


def fetch_schedule(
    current_disciplines,
    courses_by_discipline: dict[str, dict],
    fetch_detail,
    cancel_token=None,
    max_workers: int = 8,
) -> dict[str, dict[str, dict]] | None:
    """Build the schedule grid for a student's enrollments. None if cancelled."""
    enrollments = normalize_enrollments(current_disciplines)
    details = fetch_discipline_details(
        [e["disciplineId"] for e in enrollments],
        fetch_detail,
        cancel_token=cancel_token,
        max_workers=max_workers,
    )
    if details is None:
        return None
    return build_schedule(enrollments, details, courses_by_discipline)


def schedule_rows(grid: dict[str, dict[str, dict]]) -> list[dict]:
    """
    Dense row-major rendering: one row per TIME_SLOTS entry, one cell per DAYS entry.

    Cells carry {"courseId", "name", "classNumber"} or None.
    """
    rows = []
    for slot in TIME_SLOTS:
        cells = {}
        for day in DAYS:
            cell = grid.get(day, {}).get(slot)
            cells[day] = None if cell is None else {
                "courseId": cell["course"]["id"],
                "name": cell["course"]["name"],
                "classNumber": cell["classNumber"],
            }
        rows.append({"slot": slot, "cells": cells})
    return rows
