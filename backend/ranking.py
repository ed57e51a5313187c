import re

_COHORT_RE = re.compile(r'^(\d{4})')

SEPARATOR_ENTRY = {"rank": -1, "studentId": "separator", "name": "...", "totalCredits": -1}


def cohort_year(student_id) -> str | None:
    """'202110012345' -> '2021'. None when the id has no 4-digit prefix."""
    if not student_id:
        return None
    m = _COHORT_RE.match(str(student_id).strip())
    return m.group(1) if m else None


def _credits(raw) -> int:
    try:
        return int(raw or 0)
    except (TypeError, ValueError):
        return 0


def rank_cohort(students: list[dict], year: str) -> list[dict]:
    """
    Full ranked list for one cohort.

    Sorted by totalCredits descending; the sort is stable so ties keep the
    backend order, and rank is the 1-based position.
    """
    members = [
        s for s in students
        if s.get("studentId") and cohort_year(s["studentId"]) == year
    ]
    scored = [
        {
            "studentId": str(s["studentId"]),
            "name": f"{s.get('name', '')} {s.get('lastName', '')}".strip(),
            "totalCredits": _credits(s.get("mandatoryCredits")) + _credits(s.get("electiveCredits")),
        }
        for s in members
    ]
    scored.sort(key=lambda s: s["totalCredits"], reverse=True)
    return [{"rank": idx + 1, **s} for idx, s in enumerate(scored)]


def build_ranking(students: list[dict], current_student_id: str, top_n: int = 5) -> list[dict]:
    """
    Top `top_n` of the current student's cohort, plus the student's own row.

    If the student is outside the top slice and the cohort is larger than it,
    the result is top + separator + the student's entry.
    """
    year = cohort_year(current_student_id)
    if not year or not students:
        return []

    full = rank_cohort(students, year)
    top = full[:top_n]
    if any(s["studentId"] == str(current_student_id) for s in top):
        return top

    own = next((s for s in full if s["studentId"] == str(current_student_id)), None)
    if own is not None and len(full) > top_n:
        return top + [dict(SEPARATOR_ENTRY), own]
    return top
