"""组件装配

按配置构建知识库、会话存储、外部服务与对话管理器。
API 和 CLI 共用同一套装配逻辑。
"""
import logging
from typing import Callable, Optional

from hydrodiag.core.dialogue_manager import TroubleshootingDialogueManager
from hydrodiag.core.knowledge_base import KnowledgeBase
from hydrodiag.dao import SessionDAO, get_default_db_path
from hydrodiag.scripts.init_db import init_database
from hydrodiag.services.artifact_analyzer import LLMArtifactAnalyzer
from hydrodiag.services.hypothesis_generator import LLMHypothesisGenerator
from hydrodiag.services.llm_service import LLMService
from hydrodiag.services.scenario_retriever import ScenarioRetriever
from hydrodiag.services.upload_store import UploadStore
from hydrodiag.utils.config import Config

logger = logging.getLogger(__name__)


def load_knowledge_base(config: Config) -> KnowledgeBase:
    """按配置加载知识库（未配置目录时使用包内自带知识库）"""
    if config.knowledge.kb_dir:
        return KnowledgeBase.load(config.knowledge.kb_dir)
    return KnowledgeBase.default()


def load_scenario_retriever(config: Config) -> ScenarioRetriever:
    """按配置加载场景库"""
    if config.knowledge.scenarios_path:
        return ScenarioRetriever.load(config.knowledge.scenarios_path)
    return ScenarioRetriever.default()


def build_upload_store(config: Config) -> UploadStore:
    return UploadStore(config.storage.upload_dir)


def build_dialogue_manager(
    config: Config,
    progress_callback: Optional[Callable[[str], None]] = None,
) -> TroubleshootingDialogueManager:
    """
    构建对话管理器

    Args:
        config: 全局配置
        progress_callback: 进度回调函数

    Returns:
        TroubleshootingDialogueManager

    Raises:
        KnowledgeBaseError: 知识库加载失败
    """
    kb = load_knowledge_base(config)

    db_path = init_database(config.storage.db_path or get_default_db_path())
    logger.info("会话存储: %s", db_path)

    llm_service = LLMService(config, progress_callback=progress_callback)

    return TroubleshootingDialogueManager(
        kb=kb,
        session_store=SessionDAO(db_path),
        hypothesis_generator=LLMHypothesisGenerator(llm_service),
        artifact_analyzer=LLMArtifactAnalyzer(llm_service),
        scenario_retriever=load_scenario_retriever(config),
        upload_store=build_upload_store(config),
        engine_config=config.engine,
        progress_callback=progress_callback,
    )
