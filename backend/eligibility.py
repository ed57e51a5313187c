from course_status import COMPLETED, CURRENT, NOT_TAKEN, CAN_TAKE
from data_loader import iter_concrete_courses


class StatusChangeRejected(ValueError):
    """A status change that must not reach the backend."""

    def __init__(self, message: str, reason: str):
        super().__init__(message)
        self.reason = reason


def build_course_index(courses: list[dict]) -> dict[str, dict]:
    """course id -> course dict, covering top-level nodes and group electives."""
    index = {course["id"]: course for course in courses}
    for course in iter_concrete_courses(courses):
        index.setdefault(course["id"], course)
    return index


def check_can_take(
    course: dict,
    statuses: dict[str, str],
    total_completed_credits: int,
    logged_in: bool = True,
) -> dict:
    """
    Prerequisite and credit gate for one course.

    Every dependency id must be COMPLETED in the status map; a dependency
    with no entry is unmet. credit_lock == 0 means no credit gate.
    Without a logged-in student every course is takeable (preview mode).

    Returns:
      {
        "can_take": False,
        "dependencies_met": False,
        "credits_met": True,
        "missing_dependencies": ["IME0410824"],
        "why_not": "Missing prerequisite discipline(s): IME0410824.",
      }
    """
    dependencies = list(course.get("dependencies") or [])
    missing = [dep for dep in dependencies if statuses.get(dep) != COMPLETED]
    dependencies_met = not missing

    credit_lock = int(course.get("credit_lock") or 0)
    credits_met = credit_lock == 0 or total_completed_credits >= credit_lock

    can_take = (not logged_in) or (dependencies_met and credits_met)

    why_not = None
    if not can_take:
        if not dependencies_met:
            why_not = f"Missing prerequisite discipline(s): {', '.join(missing)}."
        else:
            why_not = (
                f"Requires at least {credit_lock} completed credits; "
                f"you have {total_completed_credits}."
            )

    return {
        "can_take": can_take,
        "dependencies_met": dependencies_met,
        "credits_met": credits_met,
        "missing_dependencies": missing,
        "why_not": why_not,
    }


def validate_status_change(
    course: dict,
    new_status: str,
    statuses: dict[str, str],
    total_completed_credits: int,
    course_index: dict[str, dict] | None = None,
) -> None:
    """
    Raise StatusChangeRejected if the requested change must not be sent.

    NOT_TAKEN is always allowed. CURRENT/COMPLETED require the gate to pass.
    """
    if new_status not in (COMPLETED, CURRENT, NOT_TAKEN):
        raise StatusChangeRejected(f"Unsupported status {new_status!r}.", "invalid_status")
    if course.get("is_elective_group"):
        raise StatusChangeRejected(
            f"{course['name']} is an elective group; change the status of a concrete elective instead.",
            "elective_group",
        )
    if new_status == NOT_TAKEN:
        return

    gate = check_can_take(course, statuses, total_completed_credits, logged_in=True)
    if gate["can_take"]:
        return

    if not gate["dependencies_met"]:
        course_index = course_index or {}
        names = [
            course_index[dep]["name"] if dep in course_index else dep
            for dep in gate["missing_dependencies"]
        ]
        raise StatusChangeRejected(
            "You must complete all prerequisite disciplines before taking this one: "
            + ", ".join(names) + ".",
            "missing_prerequisites",
        )
    raise StatusChangeRejected(
        f"You need at least {course.get('credit_lock')} completed credits to take this discipline. "
        f"You have {total_completed_credits}.",
        "missing_credits",
    )


def build_display_statuses(
    courses: list[dict],
    statuses: dict[str, str],
    total_completed_credits: int,
    logged_in: bool = True,
) -> dict[str, str]:
    """
    Status for every flowchart node and group elective.

    Explicit statuses pass through; untouched courses become CAN_TAKE when the
    gate passes, else NOT_TAKEN. Elective-group containers never become
    CAN_TAKE.
    """
    display: dict[str, str] = {}
    for course_id, course in build_course_index(courses).items():
        explicit = statuses.get(course_id)
        if explicit and explicit != NOT_TAKEN:
            display[course_id] = explicit
            continue
        if course.get("is_elective_group"):
            display[course_id] = NOT_TAKEN
            continue
        gate = check_can_take(course, statuses, total_completed_credits, logged_in=logged_in)
        display[course_id] = CAN_TAKE if gate["can_take"] and logged_in else NOT_TAKEN
    return display
