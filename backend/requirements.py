from config import REQUIRED_MANDATORY_CREDITS, REQUIRED_ELECTIVE_CREDITS
from course_status import COMPLETED
from data_loader import MANDATORY_CATEGORY, ELECTIVE_CATEGORY, iter_concrete_courses

STATUS_COMPLETE_LABEL = "Completo"
STATUS_INCOMPLETE_LABEL = "Incompleto"


def completed_credits_by_category(courses: list[dict], statuses: dict[str, str]) -> dict[str, int]:
    """
    Sum credits of COMPLETED concrete courses, bucketed by category.

    Elective-group containers never count; their completed electives do.
    Categories other than Obrigatória/Eletiva are ignored.
    """
    totals = {MANDATORY_CATEGORY: 0, ELECTIVE_CATEGORY: 0}
    for course in iter_concrete_courses(courses):
        if statuses.get(course["id"]) != COMPLETED:
            continue
        category = course.get("category")
        if category in totals:
            totals[category] += int(course.get("credits") or 0)
    return totals


def total_completed_credits(courses: list[dict], statuses: dict[str, str]) -> int:
    totals = completed_credits_by_category(courses, statuses)
    return totals[MANDATORY_CATEGORY] + totals[ELECTIVE_CATEGORY]


def _requirement_row(completed: int, required: int) -> dict:
    remaining = max(0, required - completed)
    return {
        "completed": completed,
        "remaining": remaining,
        "total": required,
        "status": STATUS_COMPLETE_LABEL if remaining == 0 else STATUS_INCOMPLETE_LABEL,
    }


def summarize_requirements(
    courses: list[dict],
    statuses: dict[str, str],
    required_mandatory: int = REQUIRED_MANDATORY_CREDITS,
    required_elective: int = REQUIRED_ELECTIVE_CREDITS,
) -> dict:
    """
    Degree requirement summary.

    Returns:
      {
        "mandatory": {"completed": 4, "remaining": 173, "total": 177, "status": "Incompleto"},
        "elective":  {"completed": 2, "remaining": 18,  "total": 20,  "status": "Incompleto"},
        "total_completed_credits": 6,
      }
    """
    totals = completed_credits_by_category(courses, statuses)
    return {
        "mandatory": _requirement_row(totals[MANDATORY_CATEGORY], required_mandatory),
        "elective": _requirement_row(totals[ELECTIVE_CATEGORY], required_elective),
        "total_completed_credits": totals[MANDATORY_CATEGORY] + totals[ELECTIVE_CATEGORY],
    }
