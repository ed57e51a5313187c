import re

# Matches: IME01-04827, IME 01 04827, ime0104827, FIS01-10842, etc.
CANONICAL = re.compile(r'^([A-Za-z]{2,4})\s*(\d{2})\s*[-]?\s*(\d{5})$')

DAY_LABELS = {
    "SEG": "Seg",
    "TER": "Ter",
    "QUA": "Qua",
    "QUI": "Qui",
    "SEX": "Sex",
    "SAB": "Sáb",
}


def normalize_course_id(raw: str) -> str | None:
    """
    Normalizes a course code to the compact frontend id 'DEPTNNNNNNN'.
    Handles: 'IME01-04827', 'ime01-04827', 'IME 01 04827', 'IME0104827'
    Codes that do not look like a department code (e.g. 'ELETIVA1') are
    upper-cased and stripped of whitespace instead.
    Returns None for blank input.
    """
    if not raw or not str(raw).strip():
        return None
    raw = str(raw).strip()
    m = CANONICAL.match(raw)
    if m:
        return f"{m.group(1).upper()}{m.group(2)}{m.group(3)}"
    return re.sub(r'\s+', '', raw).upper()


def split_course_list(raw_str) -> list[str]:
    """Splits a comma/semicolon-separated cell into normalized course ids, deduplicated in order."""
    if raw_str is None:
        return []
    raw_str = str(raw_str)
    if not raw_str.strip() or raw_str.strip().lower() in ("none", "nan"):
        return []
    out: list[str] = []
    for token in re.split(r'[,;\n]+', raw_str):
        normalized = normalize_course_id(token)
        if normalized and normalized not in out:
            out.append(normalized)
    return out


def normalize_teacher_name(name) -> str:
    """'MARIA DA SILVA' -> 'Maria Da Silva'. Non-strings become ''."""
    if not name or not isinstance(name, str):
        return ""
    return " ".join(word[:1].upper() + word[1:] for word in name.lower().split(" "))


def format_class_times(times) -> str:
    """
    Human-readable class times.

    'SEG N1 N2 QUA N1 N2' -> 'Seg N1 N2 / Qua N1 N2'
    Tokens before the first day code are dropped.
    """
    if not times or not isinstance(times, str):
        return ""
    groups: list[list[str]] = []
    for token in times.split():
        day = DAY_LABELS.get(token.upper())
        if day:
            groups.append([day])
        elif groups:
            groups[-1].append(token)
    return " / ".join(" ".join(group) for group in groups)
