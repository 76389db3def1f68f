"""API 依赖

对话管理器在首次请求时按配置构建，之后复用。
测试中通过 app.dependency_overrides 替换。
"""
from functools import lru_cache

from hydrodiag.core.bootstrap import build_dialogue_manager
from hydrodiag.core.dialogue_manager import TroubleshootingDialogueManager
from hydrodiag.utils.config import load_config


@lru_cache(maxsize=1)
def get_dialogue_manager() -> TroubleshootingDialogueManager:
    return build_dialogue_manager(load_config())
