"""兜底推理相关的数据模型

外部服务（假设生成、证据分析、场景检索）的输入输出契约。
"""

from __future__ import annotations

from typing import List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator


class Scenario(BaseModel):
    """历史故障场景"""

    scenario_id: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    symptoms: List[str] = Field(default_factory=list)
    questions: List[str] = Field(default_factory=list)
    steps: List[str] = Field(default_factory=list)
    root_cause: Optional[str] = None
    solution: Optional[str] = None
    failure_mode_tags: List[str] = Field(default_factory=list)
    match_score: int = 0


class HypothesisRequest(BaseModel):
    """假设生成请求

    Attributes:
        issue: 用户的问题描述
        top_causes: 当前 top-3 根因及分数
        qa_pairs: 已积累的问答对
        scenarios: 检索到的相似场景（由执行方填充）
    """

    issue: str
    top_causes: List[Tuple[str, float]] = Field(default_factory=list)
    qa_pairs: List[Tuple[str, str]] = Field(default_factory=list)
    scenarios: List[Scenario] = Field(default_factory=list)


class HypothesisResult(BaseModel):
    """假设生成的结构化结果"""

    clarifying_questions: List[str] = Field(default_factory=list)
    diagnostic_steps: List[str] = Field(default_factory=list)
    likely_cause: Optional[str] = None
    recommended_solution: Optional[str] = None
    failure_mode_tags: List[str] = Field(default_factory=list)
    confidence: float = 0.0
    rationale: Optional[str] = None
    raw_text: Optional[str] = None

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value):
        """置信度限制在 [0, 1]，非数字视为 0"""
        try:
            value = float(value)
        except (TypeError, ValueError):
            return 0.0
        return max(0.0, min(1.0, value))

    @field_validator(
        "clarifying_questions", "diagnostic_steps", "failure_mode_tags", mode="before"
    )
    @classmethod
    def _coerce_str_list(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            return [value] if value.strip() else []
        if isinstance(value, list):
            return [str(v) for v in value if v is not None and str(v).strip()]
        return []

    @classmethod
    def empty(cls, raw_text: Optional[str] = None) -> "HypothesisResult":
        """零置信度的空结果"""
        return cls(raw_text=raw_text)


class HypothesisOutcome(BaseModel):
    """假设生成结果或失败原因

    失败时 result 为零置信度空结果，调用方无需区分分支即可继续推进。
    """

    result: HypothesisResult = Field(default_factory=HypothesisResult)
    failure: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.failure is None


class ArtifactComponent(BaseModel):
    """图纸中识别出的部件"""

    label: str = ""
    type: str = ""


class ArtifactAnalysis(BaseModel):
    """证据分析结果"""

    components: List[ArtifactComponent] = Field(default_factory=list)
    connections: List[List[str]] = Field(default_factory=list)

    def component_types(self) -> List[str]:
        """去重后的部件类型"""
        seen = []
        for component in self.components:
            if component.type and component.type not in seen:
                seen.append(component.type)
        return seen


class ArtifactOutcome(BaseModel):
    """证据分析结果或失败原因"""

    analysis: ArtifactAnalysis = Field(default_factory=ArtifactAnalysis)
    failure: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.failure is None
