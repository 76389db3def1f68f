"""测试共用 fixture

小型内存知识图谱，数值便于手算：
- hydraulic_kb: 5 个等先验根因、2 个症状、4 个测试
- gating_kb: 单症状强指向一个根因（初始化后即超过高阈值）
- fallback_kb: 没有任何测试（直接进入兜底推理）
"""
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from hydrodiag.core.knowledge_base import KnowledgeBase
from hydrodiag.models import DiagnosticSession, KnowledgeGraph


def build_kb(symptoms, causes, tests, symptom_to_cause=(), cause_to_test=(), cause_to_fix=()):
    """按字典列表构建知识库"""
    graph = KnowledgeGraph(
        symptoms=list(symptoms),
        causes=list(causes),
        tests=list(tests),
        edges={
            "symptom_to_cause": list(symptom_to_cause),
            "cause_to_test": list(cause_to_test),
            "cause_to_fix": list(cause_to_fix),
        },
    )
    return KnowledgeBase(graph)


@pytest.fixture
def hydraulic_kb():
    return build_kb(
        symptoms=[
            {"id": "slow", "aliases": ["slow", "sluggish"]},
            {"id": "hot", "aliases": ["hot", "overheat"]},
        ],
        causes=[
            {"id": "pump_wear", "component": "pump", "prior": 0.2},
            {"id": "relief_misadjusted", "component": "relief_valve", "prior": 0.2},
            {"id": "cylinder_leak", "component": "cylinder", "prior": 0.2},
            {"id": "cooler_blocked", "component": "cooler", "prior": 0.2},
            {"id": "load_excessive", "component": "load", "prior": 0.2},
        ],
        tests=[
            {
                "id": "case_drain",
                "question": "What is the case-drain flow (L/min)?",
                "expected": {"type": "numeric", "normal_max": 2.0},
                "safety": "Never block the case drain.",
            },
            {
                "id": "relief_setting",
                "question": "At what pressure does the relief valve crack (bar)?",
                "expected": {"type": "numeric", "normal_min": 190, "normal_max": 230},
            },
            {
                "id": "bypass",
                "question": "Is there flow out of the opposite cylinder port? (yes/no)",
                "expected": {"type": "boolean"},
            },
            {
                "id": "cooler_delta",
                "question": "What is the temperature drop across the cooler (°C)?",
                "expected": {"type": "numeric", "normal_min": 5},
            },
        ],
        symptom_to_cause=[
            {"symptom": "slow", "cause": "pump_wear", "weight": 1.0},
            {"symptom": "slow", "cause": "cylinder_leak", "weight": 0.5},
            {"symptom": "hot", "cause": "cooler_blocked", "weight": 1.0},
            {"symptom": "hot", "cause": "relief_misadjusted", "weight": 0.5},
        ],
        cause_to_test=[
            {"cause": "pump_wear", "test": "case_drain", "discriminative": 1.0},
            {"cause": "relief_misadjusted", "test": "relief_setting", "discriminative": 0.9},
            {"cause": "cylinder_leak", "test": "bypass", "discriminative": 0.8},
            {"cause": "cooler_blocked", "test": "cooler_delta", "discriminative": 0.9},
        ],
        cause_to_fix=[
            {"cause": "pump_wear", "fix": "Rebuild the pump."},
            {"cause": "relief_misadjusted", "fix": "Reset the relief valve."},
            {"cause": "cylinder_leak", "fix": "Reseal the cylinder."},
            {"cause": "cooler_blocked", "fix": "Clean the cooler."},
        ],
    )


@pytest.fixture
def gating_kb():
    return build_kb(
        symptoms=[{"id": "leak", "aliases": ["leak"]}],
        causes=[
            {"id": "seal_failure", "component": "cylinder", "prior": 0.1},
            {"id": "hose_burst", "component": "hose", "prior": 0.1},
        ],
        tests=[
            {
                "id": "seal_check",
                "question": "Is oil weeping from the rod seal? (yes/no)",
                "expected": {"type": "boolean"},
            },
        ],
        symptom_to_cause=[
            {"symptom": "leak", "cause": "seal_failure", "weight": 1.0},
        ],
        cause_to_test=[
            {"cause": "seal_failure", "test": "seal_check", "discriminative": 1.0},
        ],
        cause_to_fix=[
            {"cause": "seal_failure", "fix": "Replace the rod seal."},
            {"cause": "hose_burst", "fix": "Replace the hose."},
        ],
    )


@pytest.fixture
def fallback_kb():
    return build_kb(
        symptoms=[{"id": "slow", "aliases": ["slow"]}],
        causes=[
            {"id": "pump_wear", "component": "pump", "prior": 0.5},
            {"id": "relief_misadjusted", "component": "relief_valve", "prior": 0.5},
        ],
        tests=[],
    )


@pytest.fixture
def new_session():
    return DiagnosticSession(session_id="s-1")


@pytest.fixture
def make_kb():
    """知识库构建函数"""
    return build_kb
