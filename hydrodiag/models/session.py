"""会话状态数据模型

单一版本化的会话 schema。存储层读出的原始数据统一经过
migrate_session_payload 处理一次，之后代码不再做零散的字段补齐。
"""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

SESSION_SCHEMA_VERSION = 2

ArtifactKind = Literal["schematic", "photo", "pdf"]


class Stage(str, Enum):
    """会话所处的诊断阶段"""

    INIT = "init"
    GATHERING = "gathering"
    DIAGNOSING = "diagnosing"
    PROPOSING = "proposing"
    VERIFYING = "verifying"
    AWAITING_ARTIFACTS = "awaiting_artifacts"
    RESOLVED = "resolved"


class QuestionTurn(BaseModel):
    """一次提问

    Attributes:
        text: 问题文本
        asked_at: 提问时间（尚未提出时为 None）
        answered_at: 回答时间（尚未回答时为 None）
    """

    text: str
    asked_at: Optional[datetime] = None
    answered_at: Optional[datetime] = None


class ArtifactRecord(BaseModel):
    """用户上传并已分析的证据"""

    id: str
    kind: ArtifactKind = "schematic"
    path: str
    media_type: str = "application/octet-stream"
    component_types: List[str] = Field(default_factory=list)
    analyzed_at: datetime = Field(default_factory=datetime.now)


class DiagnosticSession(BaseModel):
    """诊断会话

    Attributes:
        session_id: 会话 ID（不透明字符串）
        stage: 当前阶段
        history: 用户原始输入（按时间顺序）
        responses: 问题文本 -> 最近一次回答
        questions: 已排队/已提出的问题
        tags: 从首条描述中提取的粗粒度故障标签
        beliefs: 根因 ID -> 分数（和为 1）
        symptom_ids: 首条描述匹配到的症状
        asked_tests: 已消耗的测试 ID
        pending_test_id: 等待回答的测试
        proposed_cause_id: 正在验证的根因
        proposed_fix: 正在验证的修复方案
        verification_prompt: 验证提示语
        tried_causes: 已被用户否定的根因（按顺序）
        resolution_attempts: 修复尝试次数
        auto_loop_count: 兜底推理生成问题的轮数
        artifacts: 已处理的上传证据
        pending_artifact_kind: 正在等待的证据类型
    """

    schema_version: int = SESSION_SCHEMA_VERSION
    session_id: str
    stage: Stage = Stage.INIT

    history: List[str] = Field(default_factory=list)
    responses: Dict[str, str] = Field(default_factory=dict)
    questions: List[QuestionTurn] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)

    # 推理状态
    beliefs: Dict[str, float] = Field(default_factory=dict)
    symptom_ids: List[str] = Field(default_factory=list)
    asked_tests: List[str] = Field(default_factory=list)
    pending_test_id: Optional[str] = None

    # 修复方案与验证
    proposed_cause_id: Optional[str] = None
    proposed_fix: Optional[str] = None
    verification_prompt: Optional[str] = None
    tried_causes: List[str] = Field(default_factory=list)
    resolution_attempts: int = 0
    auto_loop_count: int = 0

    # 证据
    artifacts: List[ArtifactRecord] = Field(default_factory=list)
    pending_artifact_kind: Optional[ArtifactKind] = None

    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    @property
    def complaint(self) -> str:
        """本轮诊断的首条问题描述"""
        return self.history[0] if self.history else ""

    def next_unanswered_question(self) -> Optional[QuestionTurn]:
        """获取第一个未回答的问题"""
        for question in self.questions:
            if question.answered_at is None:
                return question
        return None

    def qa_pairs(self) -> List[tuple]:
        """已回答的问答对"""
        return list(self.responses.items())

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典（用于 JSON 序列化）"""
        return self.model_dump(mode="json")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DiagnosticSession":
        """从字典创建（用于 JSON 反序列化）"""
        return cls(**data)


# v1（驼峰命名的旧格式）字段映射
_LEGACY_FIELD_MAP = {
    "id": "session_id",
    "symptomIds": "symptom_ids",
    "askedTests": "asked_tests",
    "pendingTestId": "pending_test_id",
    "proposedCauseId": "proposed_cause_id",
    "proposedFix": "proposed_fix",
    "verificationPrompt": "verification_prompt",
    "triedCauses": "tried_causes",
    "resolutionAttempts": "resolution_attempts",
    "autoLoopCount": "auto_loop_count",
    "pendingArtifactKind": "pending_artifact_kind",
}

# 已下线的阶段名 -> 当前阶段
_LEGACY_STAGES = {
    "proposing": Stage.VERIFYING.value,
    "fallback_llm": Stage.DIAGNOSING.value,
}


def _migrate_questions(raw_questions: Any) -> List[Dict[str, Any]]:
    """问题列表兼容：旧数据可能直接存字符串"""
    if not isinstance(raw_questions, list):
        return []
    questions = []
    for item in raw_questions:
        if isinstance(item, str):
            questions.append({"text": item})
        elif isinstance(item, dict) and item.get("text"):
            questions.append({
                "text": item["text"],
                "asked_at": item.get("asked_at", item.get("askedAt")),
                "answered_at": item.get("answered_at", item.get("answeredAt")),
            })
    return questions


def migrate_session_payload(session_id: str, raw: Any) -> DiagnosticSession:
    """将存储中的原始数据迁移为当前版本的会话

    - 非字典或无法校验的数据：自愈为默认会话
    - v1 驼峰字段：映射为当前字段名
    - 已下线的阶段名：映射为当前阶段

    Args:
        session_id: 会话 ID（以存储键为准）
        raw: 原始 JSON 数据

    Returns:
        当前版本的会话
    """
    if not isinstance(raw, dict):
        logger.warning("会话 %s 数据格式异常，重置为默认值", session_id)
        return DiagnosticSession(session_id=session_id)

    data: Dict[str, Any] = {}
    for key, value in raw.items():
        data[_LEGACY_FIELD_MAP.get(key, key)] = value

    data["session_id"] = session_id
    data["schema_version"] = SESSION_SCHEMA_VERSION

    stage = data.get("stage")
    if stage in _LEGACY_STAGES:
        data["stage"] = _LEGACY_STAGES[stage]
    elif stage not in {s.value for s in Stage}:
        data["stage"] = Stage.INIT.value

    data["questions"] = _migrate_questions(data.get("questions"))

    # 空值字段回退为默认值
    for key in ("history", "tags", "symptom_ids", "asked_tests", "tried_causes", "artifacts"):
        if not isinstance(data.get(key), list):
            data.pop(key, None)
    for key in ("responses", "beliefs"):
        if not isinstance(data.get(key), dict):
            data.pop(key, None)
    for key in ("resolution_attempts", "auto_loop_count"):
        if not isinstance(data.get(key), int):
            data.pop(key, None)

    fields = set(DiagnosticSession.model_fields)
    data = {k: v for k, v in data.items() if k in fields}

    try:
        return DiagnosticSession(**data)
    except ValidationError as e:
        logger.warning("会话 %s 校验失败，重置为默认值: %s", session_id, e.error_count())
        return DiagnosticSession(session_id=session_id)


def migrate_session_record(session_id: str, raw: Any) -> Tuple[DiagnosticSession, bool]:
    """迁移存储记录，并判断是否需要写回

    Returns:
        (会话, 是否被修复)；迁移后的序列化结果与原始数据不一致即视为修复
    """
    session = migrate_session_payload(session_id, raw)
    return session, session.to_dict() != raw
