import os
import sys
import pandas as pd
from normalizer import normalize_course_id, split_course_list


_BOOL_TRUTHY = {"true", "1", "yes", "y", "sim", "s"}

MANDATORY_CATEGORY = "Obrigatória"
ELECTIVE_CATEGORY = "Eletiva"

_COURSE_COLUMNS = [
    "id",
    "code",
    "name",
    "credits",
    "category",
    "semester",
    "dependencies",
    "credit_lock",
    "discipline_id",
    "is_elective_group",
    "elective_pool",
]


def _safe_bool_col(df: pd.DataFrame, col: str) -> pd.DataFrame:
    """Normalize a boolean column to Python bool regardless of CSV/Excel format.

    Handles: Python bool, Excel int/float (1/0), and string variants
    (TRUE/FALSE, true/false, 1/0, yes/no, sim/não). NaN → False.
    """
    def _coerce(x):
        if pd.isna(x):
            return False
        if isinstance(x, bool):
            return x
        if isinstance(x, (int, float)):
            return bool(x)
        return str(x).strip().lower() in _BOOL_TRUTHY

    if col in df.columns:
        df[col] = df[col].apply(_coerce)
    return df


def _clean_str(val) -> str:
    if val is None or (not isinstance(val, str) and pd.isna(val)):
        return ""
    return str(val).strip()


def _clean_int(val, default: int | None = 0) -> int | None:
    if val is None or (not isinstance(val, str) and pd.isna(val)):
        return default
    try:
        return int(float(str(val).strip()))
    except ValueError:
        return default


def _normalize_courses_df(df: pd.DataFrame) -> pd.DataFrame:
    """Fill optional columns so every row carries the full course schema."""
    df = df.copy()
    df.columns = [str(c).strip().lower() for c in df.columns]
    if "code" not in df.columns:
        raise ValueError("Catalog sheet is missing the required 'code' column.")
    for col in _COURSE_COLUMNS:
        if col not in df.columns:
            df[col] = None
    df = _safe_bool_col(df, "is_elective_group")
    return df


def _row_to_course(row) -> dict:
    code = _clean_str(row.get("code"))
    course_id = normalize_course_id(_clean_str(row.get("id")) or code)
    is_group = bool(row.get("is_elective_group", False))
    discipline_id = _clean_str(row.get("discipline_id"))
    if not discipline_id and not is_group:
        discipline_id = code
    return {
        "id": course_id,
        "code": code,
        "name": _clean_str(row.get("name")) or code,
        "credits": _clean_int(row.get("credits"), 0),
        "category": _clean_str(row.get("category")) or MANDATORY_CATEGORY,
        "semester": _clean_int(row.get("semester"), None),
        "dependencies": split_course_list(row.get("dependencies")),
        "credit_lock": _clean_int(row.get("credit_lock"), 0),
        "discipline_id": discipline_id or None,
        "is_elective_group": is_group,
        "elective_pool": _clean_str(row.get("elective_pool")) or None,
        "electives": [],
    }


def _read_sheets(data_path: str) -> tuple[pd.DataFrame, pd.DataFrame]:
    """Read (courses, electives) from a CSV directory or an .xlsx workbook."""
    if os.path.isdir(data_path):
        courses_csv = os.path.join(data_path, "courses.csv")
        if not os.path.isfile(courses_csv):
            raise FileNotFoundError(courses_csv)
        courses_df = pd.read_csv(courses_csv, dtype=str, keep_default_na=False)
        electives_csv = os.path.join(data_path, "electives.csv")
        if os.path.isfile(electives_csv):
            electives_df = pd.read_csv(electives_csv, dtype=str, keep_default_na=False)
        else:
            electives_df = pd.DataFrame(columns=["pool_id"] + _COURSE_COLUMNS)
        return courses_df, electives_df

    xl = pd.ExcelFile(data_path)
    courses_df = xl.parse("courses")
    if "electives" in xl.sheet_names:
        electives_df = xl.parse("electives")
    else:
        electives_df = pd.DataFrame(columns=["pool_id"] + _COURSE_COLUMNS)
    return courses_df, electives_df


def build_elective_pools(electives_df: pd.DataFrame) -> dict[str, list[dict]]:
    """pool_id -> ordered list of concrete elective courses (file order preserved)."""
    electives_df = _normalize_courses_df(electives_df)
    if "pool_id" not in electives_df.columns:
        electives_df["pool_id"] = ""
    pools: dict[str, list[dict]] = {}
    for _, row in electives_df.iterrows():
        pool_id = _clean_str(row.get("pool_id")).upper()
        if not pool_id:
            print(f"[WARN] Elective {row.get('code')!r} has no pool_id; skipped.", file=sys.stderr)
            continue
        course = _row_to_course(row)
        course["is_elective_group"] = False
        course["elective_pool"] = pool_id
        pools.setdefault(pool_id, []).append(course)
    return pools


def build_catalog(courses_df: pd.DataFrame, electives_df: pd.DataFrame) -> dict:
    """
    Assemble the course catalog from raw sheets.

    Returns:
      {
        "courses":         [course dict, ...]       # top-level flowchart nodes, file order
        "pools":           {"ELETIVAS": [course dict, ...]}
        "slot_groups":     {"ELETIVAS": ["ELETIVA1", "ELETIVA2", ...]}  # pools shared by 2+ containers
        "course_id_mapping": {"IME0410815": "IME04-10815", ...}
        "catalog_ids":     set of every course id (top-level and pool electives)
      }
    """
    courses_df = _normalize_courses_df(courses_df)
    pools = build_elective_pools(electives_df)

    courses: list[dict] = []
    seen_ids: set[str] = set()
    for _, row in courses_df.iterrows():
        course = _row_to_course(row)
        if not course["id"]:
            continue
        if course["id"] in seen_ids:
            print(f"[WARN] Duplicate course id {course['id']}; keeping the first row.", file=sys.stderr)
            continue
        seen_ids.add(course["id"])
        if course["is_elective_group"]:
            pool_id = (course["elective_pool"] or "").upper()
            course["elective_pool"] = pool_id or None
            course["discipline_id"] = None
            course["electives"] = list(pools.get(pool_id, []))
            if not course["electives"]:
                raise ValueError(
                    f"Elective group {course['id']} references empty or unknown pool {pool_id!r}."
                )
        elif not course["discipline_id"]:
            raise ValueError(f"Course {course['id']} has no discipline_id.")
        courses.append(course)

    containers_by_pool: dict[str, list[str]] = {}
    for course in courses:
        if course["is_elective_group"]:
            containers_by_pool.setdefault(course["elective_pool"], []).append(course["id"])
    slot_groups = {
        pool_id: ids for pool_id, ids in containers_by_pool.items() if len(ids) > 1
    }

    course_id_mapping: dict[str, str] = {}
    for course in iter_concrete_courses(courses):
        course_id_mapping.setdefault(course["id"], course["discipline_id"])

    catalog_ids = set(seen_ids) | set(course_id_mapping)

    # ── Startup data integrity checks ──────────────────────────────────────
    unknown_deps = sorted({
        dep
        for course in iter_concrete_courses(courses)
        for dep in course["dependencies"]
        if dep not in catalog_ids
    })
    if unknown_deps:
        print(f"[WARN] {len(unknown_deps)} dependency id(s) not found in catalog: {unknown_deps}")

    unused_pools = sorted(set(pools) - set(containers_by_pool))
    if unused_pools:
        print(f"[WARN] {len(unused_pools)} elective pool(s) not referenced by any group: {unused_pools}")

    return {
        "courses": courses,
        "pools": pools,
        "slot_groups": slot_groups,
        "course_id_mapping": course_id_mapping,
        "catalog_ids": catalog_ids,
    }


def iter_concrete_courses(courses: list[dict]):
    """Yield every concrete course once: top-level courses, then group electives."""
    seen: set[str] = set()
    for course in courses:
        if course.get("is_elective_group"):
            continue
        if course["id"] not in seen:
            seen.add(course["id"])
            yield course
    for course in courses:
        for elective in course.get("electives") or []:
            if elective["id"] not in seen:
                seen.add(elective["id"])
                yield elective


def load_data(data_path: str) -> dict:
    """Load and parse the curriculum catalog. Raises on file/schema errors."""
    courses_df, electives_df = _read_sheets(data_path)
    catalog = build_catalog(courses_df, electives_df)
    print(
        f"[INFO] Catalog: {len(catalog['courses'])} flowchart nodes, "
        f"{len(catalog['pools'])} elective pool(s), "
        f"{len(catalog['slot_groups'])} sequential slot group(s)"
    )
    return catalog
