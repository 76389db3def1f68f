"""数据模型模块

组织结构：
- knowledge: 知识图谱模型 (Symptom, Cause, DiagnosticTest, Edges)
- session: 会话模型 (DiagnosticSession, Stage)
- hypothesis: 兜底推理契约 (HypothesisResult, ArtifactAnalysis, Scenario)
- result: 对话轮次返回结果
"""
from hydrodiag.models.knowledge import (
    Symptom,
    Cause,
    ExpectedRule,
    DiagnosticTest,
    SymptomCauseLink,
    CauseTestLink,
    CauseFixLink,
    Edges,
    KnowledgeGraph,
)
from hydrodiag.models.session import (
    SESSION_SCHEMA_VERSION,
    Stage,
    QuestionTurn,
    ArtifactRecord,
    DiagnosticSession,
    migrate_session_payload,
    migrate_session_record,
)
from hydrodiag.models.hypothesis import (
    Scenario,
    HypothesisRequest,
    HypothesisResult,
    HypothesisOutcome,
    ArtifactComponent,
    ArtifactAnalysis,
    ArtifactOutcome,
)
from hydrodiag.models.result import (
    TurnResult,
    ContinueResult,
    NeedArtifactResult,
    ProposedFixResult,
    DiagnosisResult,
    ResetResult,
    ErrorResult,
    AnyTurnResult,
)

__all__ = [
    # 知识图谱
    "Symptom",
    "Cause",
    "ExpectedRule",
    "DiagnosticTest",
    "SymptomCauseLink",
    "CauseTestLink",
    "CauseFixLink",
    "Edges",
    "KnowledgeGraph",
    # 会话
    "SESSION_SCHEMA_VERSION",
    "Stage",
    "QuestionTurn",
    "ArtifactRecord",
    "DiagnosticSession",
    "migrate_session_payload",
    "migrate_session_record",
    # 兜底推理
    "Scenario",
    "HypothesisRequest",
    "HypothesisResult",
    "HypothesisOutcome",
    "ArtifactComponent",
    "ArtifactAnalysis",
    "ArtifactOutcome",
    # 返回结果
    "TurnResult",
    "ContinueResult",
    "NeedArtifactResult",
    "ProposedFixResult",
    "DiagnosisResult",
    "ResetResult",
    "ErrorResult",
    "AnyTurnResult",
]
