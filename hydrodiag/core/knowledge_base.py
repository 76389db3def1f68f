"""知识库

加载症状/根因/测试/边四个 JSON 文件，构建只读的知识图谱。
知识库由调用方显式构造并注入各组件，不使用模块级单例。
"""
import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

from pydantic import ValidationError

from hydrodiag.exceptions import KnowledgeBaseError
from hydrodiag.models import (
    Cause,
    CauseTestLink,
    DiagnosticTest,
    Edges,
    KnowledgeGraph,
    Symptom,
)

logger = logging.getLogger(__name__)

# 包内自带的液压系统知识库
BUNDLED_KB_DIR = Path(__file__).parent.parent / "knowledge"

KB_FILES = {
    "symptoms": "symptoms.json",
    "causes": "causes.json",
    "tests": "tests.json",
    "edges": "edges.json",
}


class KnowledgeBase:
    """只读知识库

    对外暴露完整图谱以及常用查询。
    """

    def __init__(self, graph: KnowledgeGraph):
        """
        初始化知识库

        Args:
            graph: 已校验的知识图谱
        """
        self.graph = self._drop_dangling_edges(graph)
        self._causes: Dict[str, Cause] = {c.id: c for c in self.graph.causes}
        self._tests: Dict[str, DiagnosticTest] = {t.id: t for t in self.graph.tests}

    @classmethod
    def load(cls, directory: Union[str, Path]) -> "KnowledgeBase":
        """
        从目录加载知识库

        Args:
            directory: 包含 symptoms/causes/tests/edges 四个 JSON 文件的目录

        Returns:
            KnowledgeBase

        Raises:
            KnowledgeBaseError: 文件缺失、JSON 非法或校验失败
        """
        directory = Path(directory)
        payload = {}
        for key, filename in KB_FILES.items():
            path = directory / filename
            try:
                with open(path, "r", encoding="utf-8") as f:
                    payload[key] = json.load(f)
            except FileNotFoundError as e:
                raise KnowledgeBaseError(f"知识库文件不存在: {path}") from e
            except json.JSONDecodeError as e:
                raise KnowledgeBaseError(f"知识库文件 JSON 非法: {path}: {e}") from e

        try:
            graph = KnowledgeGraph(**payload)
        except ValidationError as e:
            raise KnowledgeBaseError(f"知识库校验失败 ({directory}): {e}") from e

        kb = cls(graph)
        logger.info(
            "知识库已加载: %d 症状, %d 根因, %d 测试 (%s)",
            len(kb.graph.symptoms), len(kb.graph.causes), len(kb.graph.tests), directory,
        )
        return kb

    @classmethod
    def default(cls) -> "KnowledgeBase":
        """加载包内自带知识库"""
        return cls.load(BUNDLED_KB_DIR)

    @staticmethod
    def _drop_dangling_edges(graph: KnowledgeGraph) -> KnowledgeGraph:
        """丢弃引用了不存在根因/测试的边"""
        cause_ids = {c.id for c in graph.causes}
        test_ids = {t.id for t in graph.tests}
        symptom_ids = {s.id for s in graph.symptoms}

        symptom_to_cause = [
            e for e in graph.edges.symptom_to_cause
            if e.cause in cause_ids and e.symptom in symptom_ids
        ]
        cause_to_test = [
            e for e in graph.edges.cause_to_test
            if e.cause in cause_ids and e.test in test_ids
        ]
        cause_to_fix = [e for e in graph.edges.cause_to_fix if e.cause in cause_ids]

        dropped = (
            len(graph.edges.symptom_to_cause) - len(symptom_to_cause)
            + len(graph.edges.cause_to_test) - len(cause_to_test)
            + len(graph.edges.cause_to_fix) - len(cause_to_fix)
        )
        if not dropped:
            return graph

        logger.warning("知识库中有 %d 条边引用了不存在的节点，已忽略", dropped)
        return graph.model_copy(update={
            "edges": Edges(
                symptom_to_cause=symptom_to_cause,
                cause_to_test=cause_to_test,
                cause_to_fix=cause_to_fix,
            )
        })

    # ===== 查询 =====

    @property
    def causes(self) -> List[Cause]:
        return self.graph.causes

    @property
    def edges(self) -> Edges:
        return self.graph.edges

    def classify_symptoms(self, text: str) -> List[str]:
        """
        识别自由文本中的症状

        任一别名（大小写不敏感）作为子串出现即命中。

        Args:
            text: 用户描述

        Returns:
            命中的症状 ID（按知识库顺序，去重）
        """
        lowered = (text or "").lower()
        hits = []
        for symptom in self.graph.symptoms:
            if symptom.id in hits:
                continue
            if any(alias.lower() in lowered for alias in symptom.aliases if alias):
                hits.append(symptom.id)
        return hits

    def get_cause(self, cause_id: str) -> Optional[Cause]:
        return self._causes.get(cause_id)

    def get_test(self, test_id: str) -> Optional[DiagnosticTest]:
        return self._tests.get(test_id)

    def fix_for(self, cause_id: str) -> Optional[str]:
        """根因对应的修复方案（重复时取第一条，未配置返回 None）"""
        for link in self.graph.edges.cause_to_fix:
            if link.cause == cause_id:
                return link.fix
        return None

    def links_for_test(self, test_id: str) -> List[CauseTestLink]:
        return [l for l in self.graph.edges.cause_to_test if l.test == test_id]

    def links_for_cause(self, cause_id: str) -> List[CauseTestLink]:
        return [l for l in self.graph.edges.cause_to_test if l.cause == cause_id]

    def confirmation_test_for(self, cause_id: str) -> Optional[DiagnosticTest]:
        """区分度最高的关联测试，用于修复前的确认步骤"""
        links = self.links_for_cause(cause_id)
        if not links:
            return None
        best = max(links, key=lambda l: l.discriminative)
        return self.get_test(best.test)

    def summary(self) -> Dict[str, int]:
        """知识库规模统计"""
        return {
            "symptoms": len(self.graph.symptoms),
            "causes": len(self.graph.causes),
            "tests": len(self.graph.tests),
            "symptom_to_cause": len(self.graph.edges.symptom_to_cause),
            "cause_to_test": len(self.graph.edges.cause_to_test),
            "cause_to_fix": len(self.graph.edges.cause_to_fix),
        }
