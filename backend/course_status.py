"""
Course status derivation.

Maps a backend student record onto the flowchart's course graph:

    student.completedDisciplines / currentDisciplines   (backend discipline ids)
        -> CourseIdMapping (course id <-> discipline id)
        -> {course_id: status}

Statuses are recomputed from scratch on every student or catalog change.
Courses with no entry in the returned map are NOT_TAKEN.
"""
from collections import deque

COMPLETED = "COMPLETED"
CURRENT = "CURRENT"
NOT_TAKEN = "NOT_TAKEN"
CAN_TAKE = "CAN_TAKE"

COURSE_STATUSES = (COMPLETED, CURRENT, NOT_TAKEN, CAN_TAKE)


class CourseIdMapping:
    """
    Course id -> discipline id lookup that can be populated exactly once.

    Late writes (e.g. a second catalog load) are ignored so that statuses
    already derived against the first mapping stay consistent.
    """

    def __init__(self):
        self._mapping: dict[str, str] | None = None

    @property
    def is_ready(self) -> bool:
        return self._mapping is not None

    def initialize(self, mapping: dict[str, str]) -> bool:
        """Returns True if this call populated the mapping, False if it was already set."""
        if self._mapping is not None:
            return False
        if not mapping:
            return False
        self._mapping = dict(mapping)
        return True

    def course_to_discipline(self) -> dict[str, str]:
        return dict(self._mapping or {})

    def discipline_to_course(self) -> dict[str, str]:
        return {discipline_id: course_id for course_id, discipline_id in (self._mapping or {}).items()}

    def discipline_id_for(self, course_id: str) -> str | None:
        return (self._mapping or {}).get(course_id)


def current_discipline_id(entry) -> str | None:
    """Extract the discipline id from a bare id or a {disciplineId, classNumber} pair."""
    if isinstance(entry, dict):
        raw = entry.get("disciplineId")
    else:
        raw = entry
    if raw is None:
        return None
    raw = str(raw).strip()
    return raw or None


def current_class_numbers(student: dict | None) -> dict[str, int]:
    """discipline id -> enrolled class number, for pair-shaped current entries only."""
    out: dict[str, int] = {}
    for entry in (student or {}).get("currentDisciplines") or []:
        if not isinstance(entry, dict):
            continue
        discipline_id = current_discipline_id(entry)
        class_number = entry.get("classNumber")
        if discipline_id and isinstance(class_number, int) and not isinstance(class_number, bool):
            out[discipline_id] = class_number
    return out


def _pool_key(group: dict):
    pool = group.get("elective_pool")
    if pool:
        return pool
    return tuple(e["id"] for e in group.get("electives") or [])


def _split_groups(courses: list[dict]) -> tuple[list[dict], list[list[dict]]]:
    """
    Partition elective-group containers into basic groups and sequential slot lists.

    Containers that share one pool (by pool id, or by identical elective lists)
    form a slot list in catalog order; a container that owns its pool alone is
    a basic group.
    """
    by_pool: dict = {}
    order: list = []
    for course in courses:
        if not course.get("is_elective_group"):
            continue
        key = _pool_key(course)
        if key not in by_pool:
            by_pool[key] = []
            order.append(key)
        by_pool[key].append(course)

    basic: list[dict] = []
    sequential: list[list[dict]] = []
    for key in order:
        groups = by_pool[key]
        if len(groups) == 1:
            basic.append(groups[0])
        else:
            sequential.append(groups)
    return basic, sequential


def _resolve_basic_group(group: dict, statuses: dict[str, str]) -> str | None:
    electives = group.get("electives") or []
    if any(statuses.get(e["id"]) == CURRENT for e in electives):
        return CURRENT
    if any(statuses.get(e["id"]) == COMPLETED for e in electives):
        return COMPLETED
    return None


def assign_elective_slots(slots: list[dict], pool: list[dict], statuses: dict[str, str]) -> dict[str, str]:
    """
    Greedy two-queue assignment of a shared elective pool onto ordered slots.

    Each slot consumes one completed elective if any remain, else one current
    elective, else it is NOT_TAKEN. Queue order is pool order.
    """
    completed = deque(e["id"] for e in pool if statuses.get(e["id"]) == COMPLETED)
    current = deque(e["id"] for e in pool if statuses.get(e["id"]) == CURRENT)

    assigned: dict[str, str] = {}
    for slot in slots:
        if completed:
            completed.popleft()
            assigned[slot["id"]] = COMPLETED
        elif current:
            current.popleft()
            assigned[slot["id"]] = CURRENT
        else:
            assigned[slot["id"]] = NOT_TAKEN
    return assigned


def derive_course_statuses(
    student: dict | None,
    courses: list[dict],
    mapping: CourseIdMapping | dict[str, str],
) -> dict[str, str]:
    """
    Pure status derivation.

    Precedence: a discipline listed as both completed and current resolves to
    CURRENT (current is applied after completed).
    Discipline ids with no mapping entry are dropped.
    """
    if not student:
        return {}

    if isinstance(mapping, CourseIdMapping):
        discipline_to_course = mapping.discipline_to_course()
    else:
        discipline_to_course = {d: c for c, d in (mapping or {}).items()}

    statuses: dict[str, str] = {}

    for discipline_id in student.get("completedDisciplines") or []:
        course_id = discipline_to_course.get(str(discipline_id).strip())
        if course_id:
            statuses[course_id] = COMPLETED

    for entry in student.get("currentDisciplines") or []:
        course_id = discipline_to_course.get(current_discipline_id(entry) or "")
        if course_id:
            statuses[course_id] = CURRENT

    basic_groups, slot_lists = _split_groups(courses)

    for group in basic_groups:
        resolved = _resolve_basic_group(group, statuses)
        if resolved:
            statuses[group["id"]] = resolved

    for slots in slot_lists:
        pool = slots[0].get("electives") or []
        statuses.update(assign_elective_slots(slots, pool, statuses))

    return statuses
