"""假设生成服务单元测试"""
import json
from unittest.mock import Mock

import pytest

from hydrodiag.models import HypothesisRequest, Scenario
from hydrodiag.services.hypothesis_generator import (
    LLMHypothesisGenerator,
    parse_hypothesis_response,
)


@pytest.fixture
def request_payload():
    return HypothesisRequest(
        issue="Boom lifts slowly under load",
        top_causes=[("pump_wear", 0.42), ("cylinder_leak", 0.31)],
        qa_pairs=[("What is the case-drain flow (L/min)?", "about 3")],
        scenarios=[Scenario(scenario_id="SC-001", title="Slow boom", root_cause="Worn pump")],
    )


class TestParseHypothesisResponse:
    """响应解析测试"""

    def test_parse_fenced_json(self):
        """测试: 解析代码块包裹的 JSON"""
        raw = "```json\n" + json.dumps({
            "clarifying_questions": ["Q1?"],
            "likely_cause": None,
            "confidence": 0.3,
            "unexpected": "ignored",
        }) + "\n```"

        result = parse_hypothesis_response(raw)

        assert result.clarifying_questions == ["Q1?"]
        assert result.confidence == 0.3
        assert result.raw_text is None

    def test_confidence_clamped(self):
        """测试: 置信度截断到 [0, 1]"""
        assert parse_hypothesis_response('{"confidence": 1.7}').confidence == 1.0
        assert parse_hypothesis_response('{"confidence": -2}').confidence == 0.0
        assert parse_hypothesis_response('{"confidence": "high"}').confidence == 0.0

    def test_string_list_coercion(self):
        """测试: 单个字符串被包装为列表"""
        result = parse_hypothesis_response('{"diagnostic_steps": "Check relief"}')
        assert result.diagnostic_steps == ["Check relief"]

    def test_invalid_json_keeps_raw_text(self):
        """测试: 无法解析时返回零置信度并保留原文"""
        result = parse_hypothesis_response("The pump is probably worn.")

        assert result.confidence == 0.0
        assert result.likely_cause is None
        assert result.raw_text == "The pump is probably worn."

    def test_non_object_json(self):
        """测试: JSON 不是对象"""
        assert parse_hypothesis_response("[1, 2]").raw_text == "[1, 2]"


class TestLLMHypothesisGenerator:
    """LLM 假设生成器测试"""

    def test_generate_success(self, request_payload):
        """测试: 正常生成"""
        llm = Mock()
        llm.generate_json.return_value = '{"likely_cause": "pump_wear", "confidence": 0.8}'

        outcome = LLMHypothesisGenerator(llm).generate(request_payload)

        assert outcome.ok
        assert outcome.result.likely_cause == "pump_wear"
        assert llm.generate_json.call_args.kwargs["system_prompt"] == LLMHypothesisGenerator.SYSTEM_PROMPT

    def test_prompt_contains_context(self, request_payload):
        """测试: prompt 包含问题、top 根因、问答和场景"""
        llm = Mock()
        llm.generate_json.return_value = "{}"

        LLMHypothesisGenerator(llm).generate(request_payload)

        prompt = llm.generate_json.call_args[0][0]
        assert "Issue: Boom lifts slowly under load" in prompt
        assert "pump_wear: 0.42" in prompt
        assert "Q: What is the case-drain flow (L/min)?\nA: about 3" in prompt
        assert "Scenario 1: Slow boom" in prompt
        assert "Root Cause: Worn pump" in prompt

    def test_prompt_without_answers(self):
        """测试: 无问答和场景时使用占位文本"""
        llm = Mock()
        llm.generate_json.return_value = "{}"

        LLMHypothesisGenerator(llm).generate(HypothesisRequest(issue="noisy pump"))

        prompt = llm.generate_json.call_args[0][0]
        assert "Prior answers:\nNone" in prompt
        assert "No matching scenarios." in prompt

    def test_llm_exception_degrades(self, request_payload):
        """测试: 调用异常时返回零置信度失败结果"""
        llm = Mock()
        llm.generate_json.side_effect = TimeoutError("timed out")

        outcome = LLMHypothesisGenerator(llm).generate(request_payload)

        assert not outcome.ok
        assert "TimeoutError" in outcome.failure
        assert outcome.result.confidence == 0.0
        assert outcome.result.clarifying_questions == []

    def test_unparsable_response_is_failure(self, request_payload):
        """测试: 返回不可解析时标记失败但保留原文"""
        llm = Mock()
        llm.generate_json.return_value = "not json"

        outcome = LLMHypothesisGenerator(llm).generate(request_payload)

        assert outcome.failure == "unparsable response"
        assert outcome.result.raw_text == "not json"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
