from normalizer import format_class_times, normalize_teacher_name


def _credits(raw) -> int:
    try:
        return int(raw or 0)
    except (TypeError, ValueError):
        return 0


def filter_students(students: list[dict], term: str | None = None) -> list[dict]:
    """Case-insensitive match on name / last name, substring match on studentId."""
    rows = []
    needle = (term or "").strip().lower()
    for s in students:
        name = str(s.get("name") or "")
        last_name = str(s.get("lastName") or "")
        student_id = str(s.get("studentId") or "")
        if needle and not (
            needle in name.lower() or needle in last_name.lower() or needle in student_id
        ):
            continue
        mandatory = _credits(s.get("mandatoryCredits"))
        elective = _credits(s.get("electiveCredits"))
        rows.append({
            "studentId": student_id,
            "name": f"{name} {last_name}".strip(),
            "mandatoryCredits": mandatory,
            "electiveCredits": elective,
            "totalCredits": mandatory + elective,
        })
    return rows


def filter_teachers(teachers: list[dict], term: str | None = None) -> list[dict]:
    needle = (term or "").strip().lower()
    rows = []
    for t in teachers:
        name = str(t.get("name") or "")
        if needle and needle not in name.lower():
            continue
        disciplines = t.get("disciplines") or []
        rows.append({
            "teacherId": t.get("teacherId"),
            "name": normalize_teacher_name(name),
            "disciplines": disciplines,
            "disciplineCount": len(disciplines),
        })
    return rows


def flatten_disciplines(courses: list[dict]) -> list[dict]:
    """
    Every concrete discipline of the curriculum: group electives replace their
    containers, duplicates collapse by id (last one wins, first position kept).
    Sorted by semester (unknown last), then name.
    """
    flat: dict[str, dict] = {}
    for course in courses:
        if course.get("is_elective_group"):
            for elective in course.get("electives") or []:
                flat[elective["id"]] = elective
        else:
            flat[course["id"]] = course
    return sorted(
        flat.values(),
        key=lambda c: (c.get("semester") or 99, c.get("name") or ""),
    )


def search_disciplines(disciplines: list[dict], term: str | None = None) -> list[dict]:
    needle = (term or "").strip().lower()
    if not needle:
        return list(disciplines)
    return [
        d for d in disciplines
        if needle in str(d.get("name") or "").lower() or needle in str(d.get("code") or "").lower()
    ]


def describe_discipline(course: dict, detail: dict | None) -> dict:
    """
    Catalog course merged with its upstream discipline detail.

    Classes keep upstream order; teacher names are title-cased and raw
    times ('SEG N1 N2 QUA N1 N2') become 'Seg N1 N2 / Qua N1 N2'.
    """
    classes = []
    for cls in (detail or {}).get("classes") or []:
        if not isinstance(cls, dict):
            continue
        classes.append({
            "number": cls.get("number"),
            "teacher": normalize_teacher_name(cls.get("teacher")),
            "times": format_class_times(cls.get("times")),
            "rawTimes": cls.get("times") or "",
            "whatsappGroup": cls.get("whatsappGroup") or None,
        })
    return {
        "courseId": course["id"],
        "disciplineId": course.get("discipline_id"),
        "code": course.get("code"),
        "name": course.get("name"),
        "credits": course.get("credits"),
        "semester": course.get("semester"),
        "category": course.get("category"),
        "dependencies": list(course.get("dependencies") or []),
        "creditLock": course.get("credit_lock") or 0,
        "classes": classes,
    }
