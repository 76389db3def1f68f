"""证据分析服务单元测试"""
import base64
from unittest.mock import Mock

import pytest

from hydrodiag.services.artifact_analyzer import LLMArtifactAnalyzer, parse_artifact_response


class TestParseArtifactResponse:
    """图纸分析结果解析测试"""

    def test_parse_components_and_connections(self):
        """测试: 解析部件和连接，丢弃非法连接"""
        raw = (
            '{"components": [{"label": "P1", "type": "pump"}, "junk",'
            ' {"label": "RV1", "type": "relief_valve"}, {"label": "P2", "type": "pump"}],'
            ' "connections": [["P1", "RV1"], ["RV1"], "x"]}'
        )

        analysis = parse_artifact_response(raw)

        assert [c.label for c in analysis.components] == ["P1", "RV1", "P2"]
        assert analysis.connections == [["P1", "RV1"]]
        assert analysis.component_types() == ["pump", "relief_valve"]

    def test_missing_keys(self):
        """测试: 缺少字段时为空"""
        analysis = parse_artifact_response("{}")
        assert analysis.components == []
        assert analysis.connections == []

    def test_invalid_json_raises(self):
        """测试: 非 JSON 抛出 ValueError"""
        with pytest.raises(ValueError):
            parse_artifact_response("a schematic with a pump")

    def test_non_object_raises(self):
        """测试: JSON 不是对象"""
        with pytest.raises(ValueError):
            parse_artifact_response("[]")


class TestLLMArtifactAnalyzer:
    """LLM 图纸分析器测试"""

    def test_analyze_success(self):
        """测试: 以 data URL 调用多模态模型"""
        llm = Mock()
        llm.describe_image.return_value = '{"components": [{"label": "C1", "type": "cylinder"}]}'

        outcome = LLMArtifactAnalyzer(llm).analyze(b"\x89PNG", "image/png")

        assert outcome.ok
        assert outcome.analysis.component_types() == ["cylinder"]
        data_url = llm.describe_image.call_args[0][1]
        assert data_url == "data:image/png;base64," + base64.b64encode(b"\x89PNG").decode("ascii")

    def test_empty_content(self):
        """测试: 空文件不调用模型"""
        llm = Mock()

        outcome = LLMArtifactAnalyzer(llm).analyze(b"", "image/png")

        assert outcome.failure == "empty artifact"
        llm.describe_image.assert_not_called()

    def test_llm_exception_returns_empty(self):
        """测试: 调用异常时返回空结构"""
        llm = Mock()
        llm.describe_image.side_effect = ConnectionError("down")

        outcome = LLMArtifactAnalyzer(llm).analyze(b"data", "application/pdf")

        assert not outcome.ok
        assert outcome.analysis.components == []

    def test_unparsable_returns_empty(self):
        """测试: 返回不可解析时返回空结构"""
        llm = Mock()
        llm.describe_image.return_value = "I see a pump."

        outcome = LLMArtifactAnalyzer(llm).analyze(b"data", "image/jpeg")

        assert not outcome.ok
        assert outcome.analysis.component_types() == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
