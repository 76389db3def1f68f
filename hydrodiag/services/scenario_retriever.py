"""相似场景检索

按故障标签重叠数对历史场景排序，取前 3 个。
"""
import json
import logging
from pathlib import Path
from typing import List, Optional, Union

from pydantic import ValidationError

from hydrodiag.models import Scenario

logger = logging.getLogger(__name__)

# 包内自带场景库
BUNDLED_SCENARIOS_PATH = Path(__file__).parent.parent / "knowledge" / "scenarios.json"


class ScenarioRetriever:
    """场景检索器"""

    DEFAULT_LIMIT = 3

    def __init__(self, scenarios: Optional[List[Scenario]] = None):
        """
        初始化

        Args:
            scenarios: 场景列表
        """
        self.scenarios = list(scenarios or [])

    @classmethod
    def load(cls, path: Union[str, Path]) -> "ScenarioRetriever":
        """
        从 JSON 文件加载场景库

        文件不存在或格式非法时返回空检索器（场景只是辅助上下文）。
        """
        path = Path(path)
        if not path.exists():
            logger.warning("场景库不存在: %s", path)
            return cls([])

        try:
            with open(path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except json.JSONDecodeError as e:
            logger.warning("场景库 JSON 非法: %s: %s", path, e)
            return cls([])

        if not isinstance(raw, list):
            logger.warning("场景库格式非法（应为数组）: %s", path)
            return cls([])

        scenarios = []
        for item in raw:
            try:
                scenarios.append(Scenario(**item))
            except (TypeError, ValidationError):
                logger.warning("跳过非法场景: %r", item)
        return cls(scenarios)

    @classmethod
    def default(cls) -> "ScenarioRetriever":
        """加载包内自带场景库"""
        return cls.load(BUNDLED_SCENARIOS_PATH)

    def retrieve(self, text: str, limit: int = DEFAULT_LIMIT) -> List[Scenario]:
        """
        检索相似场景

        Args:
            text: 用户描述（可附带问答上下文）
            limit: 返回数量

        Returns:
            按命中标签数降序的场景（只返回至少命中一个标签的）
        """
        lowered = (text or "").lower()
        scored = []
        for scenario in self.scenarios:
            matched = [
                tag for tag in scenario.failure_mode_tags
                if tag and str(tag).lower() in lowered
            ]
            if matched:
                scored.append(scenario.model_copy(update={"match_score": len(matched)}))

        scored.sort(key=lambda s: s.match_score, reverse=True)
        return scored[:limit]


def format_scenarios(scenarios: List[Scenario]) -> str:
    """将场景渲染为 prompt 上下文"""
    if not scenarios:
        return "No matching scenarios."

    blocks = []
    for i, s in enumerate(scenarios[:ScenarioRetriever.DEFAULT_LIMIT], 1):
        lines = [f"Scenario {i}: {s.title or s.scenario_id or 'Unknown'}"]
        if s.description:
            lines.append(f"  Description: {s.description}")
        if s.symptoms:
            lines.append(f"  Symptoms: {'; '.join(s.symptoms)}")
        if s.questions:
            lines.append(f"  Questions: {' | '.join(s.questions)}")
        if s.steps:
            lines.append(f"  Steps: {' -> '.join(s.steps)}")
        if s.root_cause:
            lines.append(f"  Root Cause: {s.root_cause}")
        if s.solution:
            lines.append(f"  Solution: {s.solution}")
        if s.failure_mode_tags:
            lines.append(f"  Tags: {', '.join(s.failure_mode_tags)}")
        blocks.append("\n".join(lines))
    return "\n---\n".join(blocks)
