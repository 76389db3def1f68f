"""诊断推理核心

核心概念：
- KnowledgeBase: 症状/根因/测试知识图谱（只读，显式注入）
- BeliefUpdater: 根因分布的初始化与更新
- DiagnosticTestSelector: 在 top 根因间选择区分度最高的测试
- DiagnosticStateMachine: 纯状态转移函数
- TroubleshootingDialogueManager: 驱动一轮对话（存储 + 外部服务）
"""

from hydrodiag.core.knowledge_base import KnowledgeBase
from hydrodiag.core.belief import BeliefUpdater, top_cause, top_causes
from hydrodiag.core.test_selector import DiagnosticTestSelector
from hydrodiag.core.state_machine import DiagnosticStateMachine, Transition
from hydrodiag.core.dialogue_manager import TroubleshootingDialogueManager

__all__ = [
    "KnowledgeBase",
    "BeliefUpdater",
    "top_cause",
    "top_causes",
    "DiagnosticTestSelector",
    "DiagnosticStateMachine",
    "Transition",
    "TroubleshootingDialogueManager",
]
