import sys
import os

import pandas as pd
import pytest

# Add backend/ to path so tests can import backend modules directly
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "backend"))

from data_loader import build_catalog  # noqa: E402


def _courses_df():
    return pd.DataFrame([
        {"code": "IME04-10001", "name": "Programação I", "credits": "4", "category": "Obrigatória",
         "semester": "1", "dependencies": "", "credit_lock": "0", "is_elective_group": "false", "elective_pool": ""},
        {"code": "IME04-10002", "name": "Programação II", "credits": "4", "category": "Obrigatória",
         "semester": "2", "dependencies": "IME04-10001", "credit_lock": "0", "is_elective_group": "false", "elective_pool": ""},
        {"code": "IME04-10003", "name": "Projeto Final", "credits": "6", "category": "Obrigatória",
         "semester": "8", "dependencies": "", "credit_lock": "100", "is_elective_group": "false", "elective_pool": ""},
        {"code": "ELETIVABASICA", "name": "Eletiva Básica", "credits": "4", "category": "Eletiva",
         "semester": "3", "dependencies": "", "credit_lock": "0", "is_elective_group": "true", "elective_pool": "BASICA"},
        {"code": "ELETIVA1", "name": "Eletiva I", "credits": "4", "category": "Eletiva",
         "semester": "5", "dependencies": "", "credit_lock": "0", "is_elective_group": "true", "elective_pool": "ELETIVAS"},
        {"code": "ELETIVA2", "name": "Eletiva II", "credits": "4", "category": "Eletiva",
         "semester": "6", "dependencies": "", "credit_lock": "0", "is_elective_group": "true", "elective_pool": "ELETIVAS"},
        {"code": "ELETIVA3", "name": "Eletiva III", "credits": "4", "category": "Eletiva",
         "semester": "7", "dependencies": "", "credit_lock": "0", "is_elective_group": "true", "elective_pool": "ELETIVAS"},
        {"code": "ELETIVA4", "name": "Eletiva IV", "credits": "4", "category": "Eletiva",
         "semester": "8", "dependencies": "", "credit_lock": "0", "is_elective_group": "true", "elective_pool": "ELETIVAS"},
    ])


def _electives_df():
    return pd.DataFrame([
        {"pool_id": "BASICA", "code": "FIS01-20001", "name": "Física I", "credits": "4", "category": "Eletiva"},
        {"pool_id": "BASICA", "code": "ILE02-20002", "name": "Inglês Instrumental", "credits": "2", "category": "Eletiva"},
        {"pool_id": "ELETIVAS", "code": "IME04-30001", "name": "Aprendizado de Máquina", "credits": "4", "category": "Eletiva"},
        {"pool_id": "ELETIVAS", "code": "IME04-30002", "name": "Segurança", "credits": "4", "category": "Eletiva"},
        {"pool_id": "ELETIVAS", "code": "IME04-30003", "name": "Computação em Nuvem", "credits": "4", "category": "Eletiva"},
    ])


@pytest.fixture
def catalog():
    return build_catalog(_courses_df(), _electives_df())


@pytest.fixture
def courses(catalog):
    return catalog["courses"]


@pytest.fixture
def course_id_mapping(catalog):
    return catalog["course_id_mapping"]
