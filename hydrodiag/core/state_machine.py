"""诊断会话状态机

显式的阶段枚举 + 纯转移函数 transition(session, event) -> (session, effects)。
状态机本身不做任何 I/O：需要外部服务时返回请求类 effect，
由对话管理器执行后再以事件的形式送回。

阶段流转：
    init → gathering → {diagnosing | proposing} → verifying
         → {resolved | gathering | awaiting_artifacts | diagnosing}
    awaiting_artifacts 可由 init / gathering / diagnosing 进入。
    resolved 为本轮诊断终点，只能通过 reset 回到 init。
"""
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple, Union

from hydrodiag.core.belief import BeliefUpdater, top_cause, top_causes
from hydrodiag.core.knowledge_base import KnowledgeBase
from hydrodiag.core.test_selector import DiagnosticTestSelector
from hydrodiag.models import (
    ArtifactAnalysis,
    ArtifactRecord,
    ContinueResult,
    DiagnosisResult,
    DiagnosticSession,
    ErrorResult,
    HypothesisRequest,
    HypothesisResult,
    NeedArtifactResult,
    ProposedFixResult,
    QuestionTurn,
    ResetResult,
    Stage,
    TurnResult,
)
from hydrodiag.utils.config import EngineConfig

VERIFY_PROMPT = "Did that resolve the issue? (yes/no)"
DEFAULT_CONFIRM_STEP = "Confirm readings match spec."
RESET_COMMAND = "reset"

YES_PATTERN = re.compile(r"^(y|yes|yep|yeah|resolved|fixed|works)\b", re.IGNORECASE)
NO_PATTERN = re.compile(r"^(n|no|nope|not yet|didn'?t|still)\b", re.IGNORECASE)

# 首条描述中的粗粒度故障标签
FAILURE_TAG_KEYWORDS = [
    ("slow_cylinder", ("slow",)),
    ("under_load", ("under load",)),
    ("overheating", ("hot", "overheat")),
]

ARTIFACT_REQUESTS = {
    Stage.INIT: (
        "Please upload the hydraulic schematic that includes the affected loop "
        "(pump → relief → control/manifold → actuator → return).",
        [
            "Include the relief valve section and case-drain path.",
            "If you have multiple sheets, upload the one with the actuator circuit.",
        ],
    ),
    Stage.GATHERING: (
        "Please upload the hydraulic schematic for this loop. "
        "Mark suspected components if possible.",
        ["Include relief valve section and case-drain path."],
    ),
    Stage.DIAGNOSING: (
        "Confidence is low. Please upload the hydraulic schematic that includes this loop.",
        ["Include relief valve section and case-drain path."],
    ),
}


# ===== 事件 =====

@dataclass(frozen=True)
class UserMessage:
    """用户输入"""
    text: str
    artifact_id: Optional[str] = None


@dataclass(frozen=True)
class ArtifactAnalyzed:
    """证据分析完成"""
    artifact: ArtifactRecord
    analysis: ArtifactAnalysis


@dataclass(frozen=True)
class ArtifactUnavailable:
    """证据不存在或无法读取"""
    artifact_id: str
    reason: str


@dataclass(frozen=True)
class HypothesisGenerated:
    """兜底推理返回"""
    result: HypothesisResult


Event = Union[UserMessage, ArtifactAnalyzed, ArtifactUnavailable, HypothesisGenerated]


# ===== 副作用 =====

@dataclass(frozen=True)
class Reply:
    """返回给调用方的结果"""
    result: TurnResult


@dataclass(frozen=True)
class RequestArtifactAnalysis:
    """请求分析上传的证据"""
    artifact_id: str
    kind: str = "schematic"


@dataclass(frozen=True)
class RequestHypothesis:
    """请求兜底推理"""
    request: HypothesisRequest


@dataclass(frozen=True)
class ResetSession:
    """删除存储中的会话"""


Effect = Union[Reply, RequestArtifactAnalysis, RequestHypothesis, ResetSession]


@dataclass
class Transition:
    """一次状态转移的结果"""
    session: DiagnosticSession
    effects: List[Effect] = field(default_factory=list)

    @property
    def reply(self) -> Optional[TurnResult]:
        for effect in self.effects:
            if isinstance(effect, Reply):
                return effect.result
        return None


def is_reset_command(text: str) -> bool:
    return (text or "").strip().lower() == RESET_COMMAND


def parse_yes_no(text: str) -> str:
    """解析是/否回答，返回 yes / no / unknown"""
    t = (text or "").strip().lower()
    if YES_PATTERN.match(t):
        return "yes"
    if NO_PATTERN.match(t):
        return "no"
    return "unknown"


def classify_failure_tags(text: str) -> List[str]:
    """提取粗粒度故障标签"""
    lowered = (text or "").lower()
    return [
        tag for tag, keywords in FAILURE_TAG_KEYWORDS
        if any(k in lowered for k in keywords)
    ]


class DiagnosticStateMachine:
    """诊断状态机

    所有方法只读写传入会话的副本，不访问存储和外部服务。
    """

    def __init__(self, kb: KnowledgeBase, config: Optional[EngineConfig] = None):
        """
        初始化

        Args:
            kb: 知识库
            config: 引擎配置（阈值、系数、兜底轮数）
        """
        self.kb = kb
        self.config = config or EngineConfig()
        self.beliefs = BeliefUpdater(kb, self.config)
        self.selector = DiagnosticTestSelector(kb, top_n=self.config.top_n)

    def transition(self, session: DiagnosticSession, event: Event) -> Transition:
        """
        状态转移

        Args:
            session: 当前会话（不会被修改）
            event: 事件

        Returns:
            Transition: 新会话 + 副作用列表
        """
        session = session.model_copy(deep=True)

        if isinstance(event, UserMessage):
            if is_reset_command(event.text):
                fresh = DiagnosticSession(session_id=session.session_id)
                return Transition(fresh, [
                    ResetSession(),
                    Reply(ResetResult(session_id=session.session_id)),
                ])
            session.history.append(event.text)
            effects = self._on_user_message(session, event)

        elif isinstance(event, ArtifactAnalyzed):
            effects = self._on_artifact_analyzed(session, event)

        elif isinstance(event, ArtifactUnavailable):
            if session.stage != Stage.AWAITING_ARTIFACTS:
                effects = self._reply(ErrorResult(
                    stage=session.stage, message="Unexpected artifact event."
                ))
            else:
                effects = self._reply(NeedArtifactResult(request=event.reason))

        elif isinstance(event, HypothesisGenerated):
            if session.stage != Stage.DIAGNOSING:
                effects = self._reply(ErrorResult(
                    stage=session.stage, message="Unexpected hypothesis event."
                ))
            else:
                effects = self._on_hypothesis(session, event.result)

        else:
            effects = self._reply(ErrorResult(
                stage=session.stage, message=f"Unknown event: {type(event).__name__}"
            ))

        session.updated_at = datetime.now()
        return Transition(session, effects)

    # ===== 用户输入 =====

    def _on_user_message(self, session: DiagnosticSession, event: UserMessage) -> List[Effect]:
        stage = session.stage

        if stage == Stage.INIT:
            return self._start(session, event.text)

        if stage == Stage.GATHERING:
            if session.pending_test_id:
                return self._on_test_answer(session, event.text)
            return self._on_queued_answer(session, event.text)

        if stage in (Stage.VERIFYING, Stage.PROPOSING):
            return self._on_verification(session, event.text)

        if stage == Stage.AWAITING_ARTIFACTS:
            artifact_id = (event.artifact_id or "").strip()
            if not artifact_id:
                return self._reply(NeedArtifactResult(
                    request="Artifact ID missing. Please upload via /api/upload and resend.",
                ))
            return [RequestArtifactAnalysis(
                artifact_id=artifact_id,
                kind=session.pending_artifact_kind or "schematic",
            )]

        if stage == Stage.DIAGNOSING:
            return self._enter_diagnosing(session)

        if stage == Stage.RESOLVED:
            return self._reply(ErrorResult(
                stage=stage,
                message="This diagnosis is already resolved. Send 'reset' to start a new one.",
            ))

        return self._reply(ErrorResult(stage=stage, message="Unhandled session stage."))

    def _start(self, session: DiagnosticSession, text: str) -> List[Effect]:
        """首条消息：识别症状并初始化分布"""
        session.tags = classify_failure_tags(text)
        session.symptom_ids = self.kb.classify_symptoms(text)
        session.beliefs = self.beliefs.initialize(session.symptom_ids)
        session.asked_tests = []
        session.pending_test_id = None
        return self._advance(session)

    def _on_test_answer(self, session: DiagnosticSession, text: str) -> List[Effect]:
        """记录测试结果并推进"""
        test_id = session.pending_test_id
        test = self.kb.get_test(test_id)
        if test is not None:
            self._record_answer(session, test.question, text)
        session.beliefs = self.beliefs.update_with_observation(session.beliefs, test_id, text)
        if test_id not in session.asked_tests:
            session.asked_tests.append(test_id)
        session.pending_test_id = None
        return self._advance(session)

    def _on_queued_answer(self, session: DiagnosticSession, text: str) -> List[Effect]:
        """回答兜底推理生成的问题"""
        current = session.next_unanswered_question()
        if current is not None:
            self._record_answer(session, current.text, text)

        following = session.next_unanswered_question()
        if following is not None:
            if following.asked_at is None:
                following.asked_at = datetime.now()
            return self._reply(ContinueResult(
                stage=Stage.GATHERING, next_question=following.text
            ))
        return self._enter_diagnosing(session)

    def _on_verification(self, session: DiagnosticSession, text: str) -> List[Effect]:
        """处理修复验证的是/否回答"""
        answer = parse_yes_no(text)

        if answer == "yes":
            cause_id = session.proposed_cause_id
            session.stage = Stage.RESOLVED
            return self._reply(DiagnosisResult(result=HypothesisResult(
                likely_cause=cause_id,
                recommended_solution=session.proposed_fix,
                failure_mode_tags=[cause_id] if cause_id else [],
                confidence=round(session.beliefs.get(cause_id, 0.0), 2) if cause_id else 0.0,
                rationale="User confirmed resolution.",
            )))

        if answer == "no":
            cause_id = session.proposed_cause_id
            if cause_id:
                session.beliefs = self.beliefs.penalize(session.beliefs, cause_id)
                if cause_id not in session.tried_causes:
                    session.tried_causes.append(cause_id)
            session.resolution_attempts += 1
            session.proposed_cause_id = None
            session.proposed_fix = None
            session.verification_prompt = None
            return self._advance(session)

        return self._reply(ContinueResult(
            stage=Stage.VERIFYING,
            next_question=session.verification_prompt or VERIFY_PROMPT,
        ))

    # ===== 外部服务回送 =====

    def _on_artifact_analyzed(self, session: DiagnosticSession, event: ArtifactAnalyzed) -> List[Effect]:
        if session.stage != Stage.AWAITING_ARTIFACTS:
            return self._reply(ErrorResult(
                stage=session.stage, message="Unexpected artifact event."
            ))
        session.artifacts.append(event.artifact)
        session.pending_artifact_kind = None
        session.beliefs = self.beliefs.apply_artifact_boosts(
            session.beliefs, event.analysis.component_types()
        )
        session.stage = Stage.GATHERING
        return self._advance(session)

    def _on_hypothesis(self, session: DiagnosticSession, result: HypothesisResult) -> List[Effect]:
        """兜底推理结果：补充问题 / 请求图纸 / 给出结论"""
        if result.clarifying_questions and session.auto_loop_count < self.config.max_auto_loops:
            existing = {q.text for q in session.questions}
            for text in result.clarifying_questions:
                if text and text not in existing:
                    session.questions.append(QuestionTurn(text=text))
                    existing.add(text)

            following = session.next_unanswered_question()
            if following is not None:
                session.auto_loop_count += 1
                session.stage = Stage.GATHERING
                session.pending_test_id = None
                if following.asked_at is None:
                    following.asked_at = datetime.now()
                return self._reply(ContinueResult(
                    stage=Stage.GATHERING, next_question=following.text
                ))

        if result.confidence < self.config.low_confidence_threshold and not session.artifacts:
            return self._request_artifact(session, Stage.DIAGNOSING)

        session.stage = Stage.RESOLVED
        return self._reply(DiagnosisResult(result=result))

    # ===== 推进 =====

    def _advance(self, session: DiagnosticSession) -> List[Effect]:
        """
        没有待答测试时决定下一步

        1. 未被否定的最佳根因达到高阈值 → 提出修复方案
        2. 还有可问的测试 → 提问
        3. 置信度低且尚未处理过图纸 → 请求图纸
        4. 其他 → 兜底推理
        """
        origin = session.stage
        best_id, best_score = self._best_untried(session)

        if best_id and best_score >= self.config.high_confidence_threshold:
            return self._propose(session, best_id, best_score)

        next_test = self.selector.select_next(session.beliefs, session.asked_tests)
        if next_test:
            return self._ask_test(session, next_test)

        if best_score < self.config.low_confidence_threshold and not session.artifacts:
            return self._request_artifact(session, origin)

        return self._enter_diagnosing(session)

    def _best_untried(self, session: DiagnosticSession) -> Tuple[Optional[str], float]:
        tried = set(session.tried_causes)
        remaining = {c: s for c, s in session.beliefs.items() if c not in tried}
        return top_cause(remaining)

    def _propose(self, session: DiagnosticSession, cause_id: str, score: float) -> List[Effect]:
        fix = self.kb.fix_for(cause_id)
        session.stage = Stage.VERIFYING
        session.proposed_cause_id = cause_id
        session.proposed_fix = fix
        session.verification_prompt = VERIFY_PROMPT

        confirm_test = self.kb.confirmation_test_for(cause_id)
        confirm_step = confirm_test.question if confirm_test else DEFAULT_CONFIRM_STEP
        cause = self.kb.get_cause(cause_id)

        return self._reply(ProposedFixResult(
            cause=cause_id,
            component=cause.component if cause else None,
            diagnostic_steps=[f"Confirm: {confirm_step}"],
            recommended_solution=fix,
            verify=VERIFY_PROMPT,
            confidence=round(score, 2),
        ))

    def _ask_test(self, session: DiagnosticSession, test_id: str) -> List[Effect]:
        test = self.kb.get_test(test_id)
        session.stage = Stage.GATHERING
        session.pending_test_id = test_id
        session.questions.append(QuestionTurn(text=test.question, asked_at=datetime.now()))
        return self._reply(ContinueResult(
            stage=Stage.GATHERING,
            next_question=test.question,
            test_id=test_id,
            safety=test.safety,
        ))

    def _request_artifact(self, session: DiagnosticSession, origin: Stage) -> List[Effect]:
        request, tips = ARTIFACT_REQUESTS.get(origin, ARTIFACT_REQUESTS[Stage.GATHERING])
        session.stage = Stage.AWAITING_ARTIFACTS
        session.pending_artifact_kind = "schematic"
        return self._reply(NeedArtifactResult(request=request, tips=list(tips)))

    def _enter_diagnosing(self, session: DiagnosticSession) -> List[Effect]:
        session.stage = Stage.DIAGNOSING
        session.pending_test_id = None
        request = HypothesisRequest(
            issue=session.complaint,
            top_causes=[
                (cause_id, round(score, 2))
                for cause_id, score in top_causes(session.beliefs, self.config.top_n)
            ],
            qa_pairs=session.qa_pairs(),
        )
        return [RequestHypothesis(request=request)]

    # ===== 工具 =====

    @staticmethod
    def _record_answer(session: DiagnosticSession, question_text: str, answer: str) -> None:
        """记录回答，并标记对应问题已回答"""
        for question in session.questions:
            if question.text == question_text and question.answered_at is None:
                question.answered_at = datetime.now()
                break
        session.responses[question_text] = (answer or "").strip()

    @staticmethod
    def _reply(result: TurnResult) -> List[Effect]:
        return [Reply(result)]
