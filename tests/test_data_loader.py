import os

import pandas as pd
import pytest

import config
from data_loader import (
    MANDATORY_CATEGORY,
    _safe_bool_col,
    build_catalog,
    iter_concrete_courses,
    load_data,
)

REPO_DATA = os.path.join(os.path.dirname(__file__), "..", "data")


class TestSafeBoolCol:
    def test_string_variants(self):
        df = pd.DataFrame({"flag": ["true", "FALSE", "1", "sim", "", None]})
        out = _safe_bool_col(df, "flag")
        assert out["flag"].tolist() == [True, False, True, True, False, False]

    def test_missing_column_is_noop(self):
        df = pd.DataFrame({"other": [1]})
        assert _safe_bool_col(df, "flag").columns.tolist() == ["other"]


class TestBuildCatalog:
    def test_ids_are_derived_from_codes(self, catalog):
        ids = [c["id"] for c in catalog["courses"]]
        assert ids[:3] == ["IME0410001", "IME0410002", "IME0410003"]

    def test_discipline_id_defaults_to_code(self, catalog):
        assert catalog["course_id_mapping"]["IME0410001"] == "IME04-10001"

    def test_mapping_includes_pool_electives(self, catalog):
        assert catalog["course_id_mapping"]["IME0430002"] == "IME04-30002"
        assert "ELETIVA1" not in catalog["course_id_mapping"]

    def test_dependencies_are_normalized(self, catalog):
        prog2 = next(c for c in catalog["courses"] if c["id"] == "IME0410002")
        assert prog2["dependencies"] == ["IME0410001"]

    def test_containers_carry_their_pool(self, catalog):
        group = next(c for c in catalog["courses"] if c["id"] == "ELETIVABASICA")
        assert group["is_elective_group"] is True
        assert group["discipline_id"] is None
        assert [e["id"] for e in group["electives"]] == ["FIS0120001", "ILE0220002"]

    def test_shared_pool_becomes_slot_group(self, catalog):
        assert catalog["slot_groups"] == {"ELETIVAS": ["ELETIVA1", "ELETIVA2", "ELETIVA3", "ELETIVA4"]}

    def test_credit_lock_and_semester_are_ints(self, catalog):
        final = next(c for c in catalog["courses"] if c["id"] == "IME0410003")
        assert final["credit_lock"] == 100
        assert final["semester"] == 8

    def test_group_with_unknown_pool_is_rejected(self):
        courses_df = pd.DataFrame([
            {"code": "ELETIVA1", "name": "Eletiva", "credits": "4", "is_elective_group": "true",
             "elective_pool": "MISSING"},
        ])
        with pytest.raises(ValueError):
            build_catalog(courses_df, pd.DataFrame(columns=["pool_id", "code"]))

    def test_duplicate_ids_keep_first(self):
        courses_df = pd.DataFrame([
            {"code": "IME04-10001", "name": "First", "credits": "4"},
            {"code": "IME0410001", "name": "Second", "credits": "2"},
        ])
        catalog = build_catalog(courses_df, pd.DataFrame(columns=["pool_id", "code"]))
        assert [c["name"] for c in catalog["courses"]] == ["First"]

    def test_missing_code_column_is_rejected(self):
        with pytest.raises(ValueError):
            build_catalog(pd.DataFrame([{"name": "x"}]), pd.DataFrame(columns=["pool_id", "code"]))


class TestIterConcreteCourses:
    def test_skips_containers_and_dedupes_pool(self, courses):
        ids = [c["id"] for c in iter_concrete_courses(courses)]
        assert "ELETIVA1" not in ids
        assert ids.count("IME0430001") == 1
        assert ids[-1] == "IME0430003"


class TestLoadShippedCatalog:
    def test_repo_catalog_loads(self):
        data = load_data(REPO_DATA)
        assert len(data["courses"]) > 20
        assert "ELETIVAS" in data["slot_groups"]
        assert len(data["slot_groups"]["ELETIVAS"]) == 4

    def test_missing_directory_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_data(str(tmp_path))

    def test_mandatory_courses_cover_the_requirement(self):
        data = load_data(REPO_DATA)
        mandatory = sum(
            c["credits"] for c in iter_concrete_courses(data["courses"])
            if c["category"] == MANDATORY_CATEGORY
        )
        assert mandatory >= config.REQUIRED_MANDATORY_CREDITS

    def test_elective_slots_cover_the_requirement(self):
        data = load_data(REPO_DATA)
        slots = sum(c["credits"] for c in data["courses"] if c["is_elective_group"])
        assert slots >= config.REQUIRED_ELECTIVE_CREDITS


class TestLoadWorkbook:
    def _write_workbook(self, path):
        courses_df = pd.read_csv(os.path.join(REPO_DATA, "courses.csv"), dtype=str, keep_default_na=False)
        electives_df = pd.read_csv(os.path.join(REPO_DATA, "electives.csv"), dtype=str, keep_default_na=False)
        with pd.ExcelWriter(path, engine="openpyxl") as writer:
            courses_df.to_excel(writer, sheet_name="courses", index=False)
            electives_df.to_excel(writer, sheet_name="electives", index=False)

    def test_workbook_matches_csv_directory(self, tmp_path):
        workbook = str(tmp_path / "catalog.xlsx")
        self._write_workbook(workbook)

        from_csv = load_data(REPO_DATA)
        from_xlsx = load_data(workbook)

        assert from_xlsx["pools"] == from_csv["pools"]
        assert from_xlsx["slot_groups"] == from_csv["slot_groups"]
        assert from_xlsx["course_id_mapping"] == from_csv["course_id_mapping"]
        assert [c["id"] for c in from_xlsx["courses"]] == [c["id"] for c in from_csv["courses"]]

    def test_workbook_without_electives_sheet(self, tmp_path):
        workbook = str(tmp_path / "mandatory_only.xlsx")
        pd.DataFrame([
            {"code": "IME04-10817", "name": "Linguagem de Programação I", "credits": 4,
             "category": "Obrigatória", "semester": 1, "is_elective_group": False},
        ]).to_excel(workbook, sheet_name="courses", index=False)

        data = load_data(workbook)
        assert data["course_id_mapping"] == {"IME0410817": "IME04-10817"}
        assert data["pools"] == {}
