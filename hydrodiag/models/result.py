"""对话轮次的返回结果

每种结果都带 status 判别字段，传输层直接序列化即可。
"""

from __future__ import annotations

from typing import List, Literal, Optional, Union

from pydantic import BaseModel, Field

from hydrodiag.models.hypothesis import HypothesisResult
from hydrodiag.models.session import Stage

ACCEPTED_MEDIA_TYPES = ["image/png", "image/jpeg", "application/pdf"]
UPLOAD_ENDPOINT = "/api/upload"


class TurnResult(BaseModel):
    """结果基类"""

    status: str
    stage: Stage
    session_id: Optional[str] = None


class ContinueResult(TurnResult):
    """继续提问"""

    status: Literal["continue"] = "continue"
    next_question: str
    test_id: Optional[str] = None
    safety: Optional[str] = None


class NeedArtifactResult(TurnResult):
    """请求上传证据"""

    status: Literal["need_artifact"] = "need_artifact"
    stage: Stage = Stage.AWAITING_ARTIFACTS
    request: str
    upload_endpoint: str = UPLOAD_ENDPOINT
    accept: List[str] = Field(default_factory=lambda: list(ACCEPTED_MEDIA_TYPES))
    tips: List[str] = Field(default_factory=list)


class ProposedFixResult(TurnResult):
    """提出修复方案，等待验证"""

    status: Literal["proposed_fix"] = "proposed_fix"
    stage: Stage = Stage.VERIFYING
    cause: str
    component: Optional[str] = None
    diagnostic_steps: List[str] = Field(default_factory=list)
    recommended_solution: Optional[str] = None
    verify: str
    confidence: float


class DiagnosisResult(TurnResult):
    """最终诊断"""

    status: Literal["diagnosis"] = "diagnosis"
    stage: Stage = Stage.RESOLVED
    result: HypothesisResult


class ResetResult(TurnResult):
    """会话已重置"""

    status: Literal["reset"] = "reset"
    stage: Stage = Stage.INIT


class ErrorResult(TurnResult):
    """错误（不抛出到传输层）"""

    status: Literal["error"] = "error"
    message: str


AnyTurnResult = Union[
    ContinueResult,
    NeedArtifactResult,
    ProposedFixResult,
    DiagnosisResult,
    ResetResult,
    ErrorResult,
]
