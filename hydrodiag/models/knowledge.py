"""知识图谱数据模型

核心概念：
- Symptom: 症状，通过别名与用户描述做子串匹配
- Cause: 根因，带先验置信度
- DiagnosticTest: 诊断测试，expected 定义正常/异常的判定边界
- Edges: 症状→根因、根因→测试、根因→修复 三类带权边
"""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class Symptom(BaseModel):
    """症状

    Attributes:
        id: 症状 ID
        aliases: 别名列表，大小写不敏感地作为子串与自由文本匹配
    """

    model_config = ConfigDict(frozen=True)

    id: str
    aliases: List[str] = Field(default_factory=list)


class Cause(BaseModel):
    """根因

    Attributes:
        id: 根因 ID
        component: 所属部件（pump, relief_valve, cylinder ...）
        prior: 无证据时的先验分数
    """

    model_config = ConfigDict(frozen=True)

    id: str
    component: str
    prior: float = Field(default=0.0, ge=0.0, le=1.0)


class ExpectedRule(BaseModel):
    """测试结果的判定规则"""

    model_config = ConfigDict(frozen=True)

    type: Literal["boolean", "numeric"] = "boolean"
    normal_min: Optional[float] = None
    normal_max: Optional[float] = None


class DiagnosticTest(BaseModel):
    """诊断测试

    Attributes:
        id: 测试 ID
        question: 向用户提出的问题
        expected: 正常/异常判定规则
        safety: 安全提示（可选）
    """

    model_config = ConfigDict(frozen=True)

    id: str
    question: str
    expected: ExpectedRule = Field(default_factory=ExpectedRule)
    safety: Optional[str] = None


class SymptomCauseLink(BaseModel):
    """症状→根因边"""

    model_config = ConfigDict(frozen=True)

    symptom: str
    cause: str
    weight: float


class CauseTestLink(BaseModel):
    """根因→测试边"""

    model_config = ConfigDict(frozen=True)

    cause: str
    test: str
    discriminative: float


class CauseFixLink(BaseModel):
    """根因→修复边"""

    model_config = ConfigDict(frozen=True)

    cause: str
    fix: str


class Edges(BaseModel):
    """知识图谱的全部边"""

    model_config = ConfigDict(frozen=True)

    symptom_to_cause: List[SymptomCauseLink] = Field(default_factory=list)
    cause_to_test: List[CauseTestLink] = Field(default_factory=list)
    cause_to_fix: List[CauseFixLink] = Field(default_factory=list)


class KnowledgeGraph(BaseModel):
    """完整知识图谱（只读）"""

    model_config = ConfigDict(frozen=True)

    symptoms: List[Symptom] = Field(default_factory=list)
    causes: List[Cause] = Field(default_factory=list)
    tests: List[DiagnosticTest] = Field(default_factory=list)
    edges: Edges = Field(default_factory=Edges)
