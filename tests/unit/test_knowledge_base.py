"""KnowledgeBase 单元测试"""
import json
import logging

import pytest

from hydrodiag.core.knowledge_base import BUNDLED_KB_DIR, KB_FILES, KnowledgeBase
from hydrodiag.exceptions import KnowledgeBaseError
from hydrodiag.models import KnowledgeGraph


def _write_kb(directory, symptoms, causes, tests, edges):
    payload = {"symptoms": symptoms, "causes": causes, "tests": tests, "edges": edges}
    for key, filename in KB_FILES.items():
        (directory / filename).write_text(json.dumps(payload[key]), encoding="utf-8")


class TestKnowledgeBaseLoad:
    """知识库加载测试"""

    def test_load_from_directory(self, tmp_path):
        """测试: 从目录加载四个 JSON 文件"""
        _write_kb(
            tmp_path,
            symptoms=[{"id": "slow", "aliases": ["slow"]}],
            causes=[{"id": "pump_wear", "component": "pump", "prior": 0.3}],
            tests=[{"id": "t1", "question": "Q?", "expected": {"type": "boolean"}}],
            edges={
                "symptom_to_cause": [{"symptom": "slow", "cause": "pump_wear", "weight": 1.0}],
                "cause_to_test": [{"cause": "pump_wear", "test": "t1", "discriminative": 0.9}],
                "cause_to_fix": [{"cause": "pump_wear", "fix": "Rebuild."}],
            },
        )

        kb = KnowledgeBase.load(tmp_path)

        assert kb.summary() == {
            "symptoms": 1,
            "causes": 1,
            "tests": 1,
            "symptom_to_cause": 1,
            "cause_to_test": 1,
            "cause_to_fix": 1,
        }
        assert kb.get_cause("pump_wear").component == "pump"

    def test_missing_file_raises(self, tmp_path):
        """测试: 缺少文件时抛出 KnowledgeBaseError"""
        (tmp_path / "symptoms.json").write_text("[]", encoding="utf-8")

        with pytest.raises(KnowledgeBaseError, match="causes.json"):
            KnowledgeBase.load(tmp_path)

    def test_invalid_json_raises(self, tmp_path):
        """测试: JSON 非法时抛出 KnowledgeBaseError"""
        _write_kb(tmp_path, [], [], [], {})
        (tmp_path / "tests.json").write_text("{not json", encoding="utf-8")

        with pytest.raises(KnowledgeBaseError):
            KnowledgeBase.load(tmp_path)

    def test_invalid_prior_raises(self, tmp_path):
        """测试: 先验超出 [0, 1] 时校验失败"""
        _write_kb(
            tmp_path,
            symptoms=[],
            causes=[{"id": "c", "component": "x", "prior": 1.5}],
            tests=[],
            edges={},
        )

        with pytest.raises(KnowledgeBaseError):
            KnowledgeBase.load(tmp_path)

    def test_bundled_kb_loads(self):
        """测试: 包内自带知识库可加载且无悬空边"""
        kb = KnowledgeBase.default()
        raw_edges = json.loads((BUNDLED_KB_DIR / "edges.json").read_text(encoding="utf-8"))

        summary = kb.summary()
        assert summary["causes"] > 0
        assert summary["tests"] > 0
        assert summary["cause_to_test"] == len(raw_edges["cause_to_test"])
        assert summary["symptom_to_cause"] == len(raw_edges["symptom_to_cause"])


class TestDanglingEdges:
    """悬空边处理测试"""

    def test_dangling_edges_dropped_with_warning(self, caplog):
        """测试: 引用不存在根因/测试的边被丢弃并记录警告"""
        graph = KnowledgeGraph(
            symptoms=[{"id": "slow", "aliases": ["slow"]}],
            causes=[{"id": "pump_wear", "component": "pump", "prior": 0.2}],
            tests=[{"id": "t1", "question": "Q?"}],
            edges={
                "symptom_to_cause": [
                    {"symptom": "slow", "cause": "pump_wear", "weight": 1.0},
                    {"symptom": "slow", "cause": "ghost", "weight": 1.0},
                ],
                "cause_to_test": [
                    {"cause": "pump_wear", "test": "t1", "discriminative": 1.0},
                    {"cause": "pump_wear", "test": "missing_test", "discriminative": 1.0},
                ],
                "cause_to_fix": [{"cause": "ghost", "fix": "Nothing."}],
            },
        )

        with caplog.at_level(logging.WARNING):
            kb = KnowledgeBase(graph)

        assert [e.cause for e in kb.edges.symptom_to_cause] == ["pump_wear"]
        assert [e.test for e in kb.edges.cause_to_test] == ["t1"]
        assert kb.edges.cause_to_fix == []
        assert "3" in caplog.text


class TestKnowledgeBaseQueries:
    """知识库查询测试"""

    def test_classify_symptoms_case_insensitive(self, hydraulic_kb):
        """测试: 别名大小写不敏感的子串匹配"""
        assert hydraulic_kb.classify_symptoms("The boom is SLOW") == ["slow"]

    def test_classify_symptoms_ordered_and_deduplicated(self, hydraulic_kb):
        """测试: 多个别名命中同一症状只返回一次，按知识库顺序"""
        hits = hydraulic_kb.classify_symptoms("it overheats, gets hot and is slow and sluggish")
        assert hits == ["slow", "hot"]

    def test_classify_symptoms_no_match(self, hydraulic_kb):
        """测试: 无匹配返回空列表"""
        assert hydraulic_kb.classify_symptoms("strange smell") == []
        assert hydraulic_kb.classify_symptoms("") == []

    def test_fix_for(self, hydraulic_kb):
        """测试: 根因修复方案，未配置返回 None"""
        assert hydraulic_kb.fix_for("pump_wear") == "Rebuild the pump."
        assert hydraulic_kb.fix_for("load_excessive") is None

    def test_fix_for_first_match_wins(self, make_kb):
        """测试: 重复配置时取第一条"""
        kb = make_kb(
            symptoms=[],
            causes=[{"id": "c", "component": "x", "prior": 0.5}],
            tests=[],
            cause_to_fix=[{"cause": "c", "fix": "first"}, {"cause": "c", "fix": "second"}],
        )
        assert kb.fix_for("c") == "first"

    def test_links(self, hydraulic_kb):
        """测试: 按测试/根因查询边"""
        assert [l.cause for l in hydraulic_kb.links_for_test("case_drain")] == ["pump_wear"]
        assert [l.test for l in hydraulic_kb.links_for_cause("cylinder_leak")] == ["bypass"]
        assert hydraulic_kb.links_for_test("unknown") == []

    def test_confirmation_test_for(self, hydraulic_kb):
        """测试: 确认测试取区分度最高的关联测试"""
        assert hydraulic_kb.confirmation_test_for("pump_wear").id == "case_drain"
        assert hydraulic_kb.confirmation_test_for("load_excessive") is None

    def test_get_unknown_returns_none(self, hydraulic_kb):
        """测试: 未知 ID 返回 None"""
        assert hydraulic_kb.get_test("nope") is None
        assert hydraulic_kb.get_cause("nope") is None
