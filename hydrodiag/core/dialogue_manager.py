"""对话管理器

驱动一轮对话：加载会话 → 状态机转移 → 执行外部调用并回送事件 → 保存会话。

同一会话的多轮请求必须串行执行。这里用进程内的按会话锁保证；
多进程部署需要在存储层另行加锁。
"""
import logging
import threading
import weakref
from typing import Any, Callable, Dict, List, Optional

from hydrodiag.core.knowledge_base import KnowledgeBase
from hydrodiag.core.state_machine import (
    ArtifactAnalyzed,
    ArtifactUnavailable,
    DiagnosticStateMachine,
    Event,
    HypothesisGenerated,
    Reply,
    RequestArtifactAnalysis,
    RequestHypothesis,
    ResetSession,
    UserMessage,
)
from hydrodiag.core.belief import top_causes
from hydrodiag.dao import SessionDAO
from hydrodiag.models import (
    ArtifactRecord,
    DiagnosticSession,
    ErrorResult,
    HypothesisRequest,
    TurnResult,
)
from hydrodiag.services.artifact_analyzer import ArtifactAnalyzer
from hydrodiag.services.hypothesis_generator import HypothesisGenerator
from hydrodiag.services.scenario_retriever import ScenarioRetriever
from hydrodiag.services.upload_store import UploadStore
from hydrodiag.utils.config import EngineConfig

logger = logging.getLogger(__name__)

ARTIFACT_NOT_FOUND = "File not found on server. Please re-upload."


class SessionLockRegistry:
    """按会话 ID 分配的互斥锁

    弱引用保存：没有请求持有时条目自动释放。
    """

    def __init__(self):
        self._locks = weakref.WeakValueDictionary()
        self._guard = threading.Lock()

    def lock_for(self, session_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(session_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[session_id] = lock
            return lock


class TroubleshootingDialogueManager:
    """液压故障诊断对话管理器"""

    def __init__(
        self,
        kb: KnowledgeBase,
        session_store: SessionDAO,
        hypothesis_generator: HypothesisGenerator,
        artifact_analyzer: ArtifactAnalyzer,
        scenario_retriever: Optional[ScenarioRetriever] = None,
        upload_store: Optional[UploadStore] = None,
        engine_config: Optional[EngineConfig] = None,
        progress_callback: Optional[Callable[[str], None]] = None,
    ):
        """
        初始化对话管理器

        Args:
            kb: 知识库（只读）
            session_store: 会话存储
            hypothesis_generator: 假设生成服务
            artifact_analyzer: 证据分析服务
            scenario_retriever: 场景检索器
            upload_store: 上传文件存储
            engine_config: 引擎配置
            progress_callback: 进度回调函数，签名为 callback(message: str)
        """
        self.kb = kb
        self.session_store = session_store
        self.hypothesis_generator = hypothesis_generator
        self.artifact_analyzer = artifact_analyzer
        self.scenario_retriever = scenario_retriever or ScenarioRetriever()
        self.upload_store = upload_store or UploadStore()
        self.engine_config = engine_config or EngineConfig()
        self.progress_callback = progress_callback

        self.machine = DiagnosticStateMachine(kb, self.engine_config)
        self._locks = SessionLockRegistry()

    def _report_progress(self, message: str) -> None:
        """报告进度"""
        if self.progress_callback:
            self.progress_callback(message)

    def handle_message(
        self,
        text: str,
        session_id: str,
        artifact_id: Optional[str] = None,
    ) -> TurnResult:
        """
        处理一条用户消息

        Args:
            text: 用户输入
            session_id: 会话 ID
            artifact_id: 已上传证据的 ID（可选）

        Returns:
            带 status 判别字段的结果，任何异常都转换为 ErrorResult
        """
        with self._locks.lock_for(session_id):
            return self._run_turn(text or "", session_id, artifact_id)

    def _run_turn(self, text: str, session_id: str, artifact_id: Optional[str]) -> TurnResult:
        session = self.session_store.get(session_id)
        logger.info(
            "[Agent] session=%s stage=%s user=%r loops=%d",
            session_id, session.stage.value, text, session.auto_loop_count,
        )

        event: Event = UserMessage(text=text, artifact_id=artifact_id)
        try:
            for _ in range(self.engine_config.max_internal_steps):
                transition = self.machine.transition(session, event)
                session = transition.session

                reply: Optional[TurnResult] = None
                next_event: Optional[Event] = None
                was_reset = False

                for effect in transition.effects:
                    if isinstance(effect, ResetSession):
                        self.session_store.reset(session_id)
                        was_reset = True
                    elif isinstance(effect, Reply):
                        reply = effect.result
                    elif isinstance(effect, RequestArtifactAnalysis):
                        next_event = self._analyze_artifact(effect)
                    elif isinstance(effect, RequestHypothesis):
                        next_event = self._generate_hypothesis(effect.request)

                if reply is not None:
                    if not was_reset:
                        self.session_store.save(session)
                    reply.session_id = session_id
                    logger.info(
                        "[Agent] session=%s -> %s (stage=%s)",
                        session_id, reply.status, session.stage.value,
                    )
                    return reply

                if next_event is None:
                    break
                event = next_event

            logger.warning("[Agent] session=%s 未产生结果 (stage=%s)", session_id, session.stage.value)
            self.session_store.save(session)
            return ErrorResult(
                stage=session.stage,
                message="No result produced for this turn.",
                session_id=session_id,
            )

        except Exception as e:
            logger.exception("[Agent] session=%s 处理失败", session_id)
            self.session_store.save(session)
            return ErrorResult(stage=session.stage, message=str(e), session_id=session_id)

    def _analyze_artifact(self, effect: RequestArtifactAnalysis) -> Event:
        """读取并分析上传文件"""
        path = self.upload_store.resolve(effect.artifact_id)
        if path is None:
            return ArtifactUnavailable(artifact_id=effect.artifact_id, reason=ARTIFACT_NOT_FOUND)

        try:
            content = path.read_bytes()
        except OSError as e:
            logger.warning("读取上传文件失败 %s: %s", path, e)
            return ArtifactUnavailable(artifact_id=effect.artifact_id, reason=ARTIFACT_NOT_FOUND)

        media_type = self.upload_store.media_type_for(path)
        self._report_progress("分析图纸...")
        outcome = self.artifact_analyzer.analyze(content, media_type)
        if not outcome.ok:
            logger.warning("图纸 %s 分析失败: %s", effect.artifact_id, outcome.failure)

        record = ArtifactRecord(
            id=effect.artifact_id,
            kind=effect.kind,
            path=str(path),
            media_type=media_type,
            component_types=outcome.analysis.component_types(),
        )
        return ArtifactAnalyzed(artifact=record, analysis=outcome.analysis)

    def _generate_hypothesis(self, request: HypothesisRequest) -> Event:
        """检索相似场景并调用假设生成"""
        context = "\n".join(
            [request.issue] + [f"Q: {q}\nA: {a}" for q, a in request.qa_pairs]
        )
        self._report_progress("检索相似场景...")
        scenarios = self.scenario_retriever.retrieve(context)

        self._report_progress("生成诊断假设...")
        outcome = self.hypothesis_generator.generate(
            request.model_copy(update={"scenarios": scenarios})
        )
        if not outcome.ok:
            logger.warning("假设生成失败，按零置信度处理: %s", outcome.failure)
        return HypothesisGenerated(result=outcome.result)

    # ===== 查询 =====

    def get_session(self, session_id: str) -> Optional[Dict[str, Any]]:
        """
        获取会话摘要

        Args:
            session_id: 会话 ID

        Returns:
            会话信息字典，不存在时返回 None
        """
        if not self.session_store.exists(session_id):
            return None
        session = self.session_store.get(session_id)
        return self.describe_session(session)

    def describe_session(self, session: DiagnosticSession) -> Dict[str, Any]:
        """会话摘要（含 top 根因）"""
        return {
            "session_id": session.session_id,
            "stage": session.stage.value,
            "turns": len(session.history),
            "symptom_ids": list(session.symptom_ids),
            "asked_tests": list(session.asked_tests),
            "pending_test_id": session.pending_test_id,
            "proposed_cause_id": session.proposed_cause_id,
            "tried_causes": list(session.tried_causes),
            "resolution_attempts": session.resolution_attempts,
            "auto_loop_count": session.auto_loop_count,
            "artifacts": [a.id for a in session.artifacts],
            "top_causes": [
                {"cause": cause_id, "score": round(score, 3)}
                for cause_id, score in top_causes(session.beliefs, self.engine_config.top_n)
            ],
        }

    def list_sessions(self, limit: int = 10) -> List[Dict[str, Any]]:
        """列出最近的会话"""
        return self.session_store.list_recent(limit)
