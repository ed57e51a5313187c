"""
Application state for one logged-in student.

Holds the catalog, the one-time course id mapping, the last fetched student
record and the statuses derived from them. Every mutation is followed by a
full refetch; statuses are never patched in place.
"""
import sys

import backend_client
from course_status import (
    COMPLETED,
    CURRENT,
    NOT_TAKEN,
    CourseIdMapping,
    current_class_numbers,
    derive_course_statuses,
)
from eligibility import (
    StatusChangeRejected,
    build_course_index,
    build_display_statuses,
    check_can_take,
    validate_status_change,
)
from requirements import summarize_requirements, total_completed_credits


class StudentSession:
    def __init__(self, client=backend_client):
        self.client = client
        self.courses: list[dict] | None = None
        self.course_index: dict[str, dict] = {}
        self.mapping = CourseIdMapping()
        self.student: dict | None = None
        self.student_created = False
        self.statuses: dict[str, str] = {}
        self._pending_student_id: str | None = None

    # ── Catalog ────────────────────────────────────────────────────────────────
    @property
    def is_ready(self) -> bool:
        return self.courses is not None and self.mapping.is_ready

    def set_catalog(self, courses: list[dict]) -> None:
        self.courses = list(courses)
        self.course_index = build_course_index(self.courses)
        self._run_pending()

    def set_course_id_mapping(self, mapping: dict[str, str]) -> bool:
        populated = self.mapping.initialize(mapping)
        if populated:
            self._run_pending()
        return populated

    def _run_pending(self) -> None:
        if self._pending_student_id and self.is_ready:
            student_id = self._pending_student_id
            self._pending_student_id = None
            self.load_student(student_id)
        elif self.student is not None and self.is_ready:
            self.recompute()

    # ── Student ────────────────────────────────────────────────────────────────
    def load_student(self, student_id: str) -> bool:
        """
        Fetch the student and derive statuses.

        Returns False (and remembers the id) when the catalog or the id
        mapping is not populated yet; the load re-runs once both are.
        """
        if not self.is_ready:
            print(
                f"[WARN] Catalog or course id mapping not ready; deferring load of student {student_id}.",
                file=sys.stderr,
            )
            self._pending_student_id = student_id
            return False

        student, created = self.client.get_student(student_id)
        self.student = student
        self.student_created = created
        self.recompute()
        return True

    def recompute(self) -> None:
        self.statuses = derive_course_statuses(self.student, self.courses or [], self.mapping)

    def logout(self) -> None:
        self.student = None
        self.student_created = False
        self.statuses = {}
        self._pending_student_id = None

    @property
    def student_id(self) -> str | None:
        return (self.student or {}).get("studentId")

    # ── Derived views ──────────────────────────────────────────────────────────
    def status_of(self, course_id: str) -> str:
        return self.statuses.get(course_id, NOT_TAKEN)

    def total_completed_credits(self) -> int:
        return total_completed_credits(self.courses or [], self.statuses)

    def requirements(self) -> dict:
        return summarize_requirements(self.courses or [], self.statuses)

    def display_statuses(self) -> dict[str, str]:
        return build_display_statuses(
            self.courses or [],
            self.statuses,
            self.total_completed_credits(),
            logged_in=self.student is not None,
        )

    def can_take(self, course_id: str) -> dict:
        course = self._course_or_reject(course_id)
        return check_can_take(
            course,
            self.statuses,
            self.total_completed_credits(),
            logged_in=self.student is not None,
        )

    def _course_or_reject(self, course_id: str) -> dict:
        course = self.course_index.get(course_id)
        if course is None:
            raise StatusChangeRejected(f"{course_id} is not in the course catalog.", "unknown_course")
        return course

    # ── Mutations ──────────────────────────────────────────────────────────────
    def update_course_status(self, course_id: str, new_status: str, class_number=None) -> bool:
        """
        Apply a status change upstream, then refetch the student.

        Leaving COMPLETED deletes the completed entry; leaving CURRENT deletes
        the current enrollment; entering COMPLETED or CURRENT adds the new
        entry. NOT_TAKEN only removes. Returns False when nothing changed.
        A failing backend call propagates and skips the refetch.
        """
        if self.student is None:
            raise StatusChangeRejected("You must be logged in to change a course status.", "not_logged_in")
        if not self.is_ready:
            raise StatusChangeRejected("Course catalog is not loaded yet.", "not_ready")

        course = self._course_or_reject(course_id)
        old_status = self.status_of(course_id)
        discipline_id = self.mapping.discipline_id_for(course_id) or course.get("discipline_id")

        # Same status (same class for CURRENT) is a no-op and skips the gate.
        if new_status == old_status and not course.get("is_elective_group"):
            enrolled = current_class_numbers(self.student).get(discipline_id)
            if new_status != CURRENT or (enrolled == class_number and not isinstance(class_number, bool)):
                return False

        validate_status_change(
            course,
            new_status,
            self.statuses,
            self.total_completed_credits(),
            course_index=self.course_index,
        )
        if new_status == CURRENT and (
            isinstance(class_number, bool) or not isinstance(class_number, int)
        ):
            raise StatusChangeRejected(
                "A class number is required to mark a course as current.",
                "missing_class_number",
            )

        student_id = self.student_id
        if old_status == COMPLETED and new_status != COMPLETED:
            self.client.delete_completed_discipline(student_id, discipline_id)
        if old_status == CURRENT and new_status != CURRENT:
            self.client.delete_current_discipline(student_id, discipline_id)

        if new_status == COMPLETED:
            self.client.put_completed_discipline(student_id, discipline_id)
        elif new_status == CURRENT:
            self.client.put_current_discipline(student_id, discipline_id, class_number)

        self.load_student(student_id)
        return True
