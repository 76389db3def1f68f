"""测试选择策略

只在当前 top-n 根因之间区分，选择 belief(C) × discriminative(C, T) 最大的未问测试。
"""
from typing import Iterable, Optional

from hydrodiag.core.belief import Beliefs, top_causes
from hydrodiag.core.knowledge_base import KnowledgeBase


class DiagnosticTestSelector:
    """诊断测试选择器"""

    def __init__(self, kb: KnowledgeBase, top_n: int = 3):
        """
        初始化

        Args:
            kb: 知识库
            top_n: 参与区分的根因数量
        """
        self.kb = kb
        self.top_n = top_n

    def select_next(self, beliefs: Beliefs, asked: Iterable[str]) -> Optional[str]:
        """
        选择下一个测试

        Args:
            beliefs: 当前分布
            asked: 已问过的测试 ID

        Returns:
            测试 ID，没有可选测试时返回 None
        """
        asked = set(asked)
        candidates = {cause_id for cause_id, _ in top_causes(beliefs, self.top_n)}

        best_test = None
        best_score = float("-inf")
        for link in self.kb.edges.cause_to_test:
            if link.cause not in candidates or link.test in asked:
                continue
            score = beliefs.get(link.cause, 0.0) * link.discriminative
            if score > best_score:
                best_test, best_score = link.test, score
        return best_test
