"""信念状态

维护根因 -> 分数的分布，随证据更新。

分数是相对权重而非校准概率：每次更新后归一化使其和为 1，
只保证对证据强度单调响应。

更新规则（系数见 EngineConfig）：
- 初始化: score(C) = prior(C) + symptom_boost × weight(S, C)，截断到 [0, 1]
- 测试结果: score(C) ± observation_step × discriminative(C, T)（异常为正，正常为负）
- 修复失败: score(C) × penalty_factor
"""
import re
from typing import Dict, Iterable, List, Optional, Tuple

from hydrodiag.core.knowledge_base import KnowledgeBase
from hydrodiag.models import DiagnosticTest
from hydrodiag.utils.config import EngineConfig

Beliefs = Dict[str, float]

# 布尔型回答的肯定模式
AFFIRMATIVE_PATTERN = re.compile(r"\b(y|yes|yeah|yep|true|1|abnormal)\b", re.IGNORECASE)

# 自由文本中的第一个数字，如 "about 180 psi"
NUMBER_PATTERN = re.compile(r"(\d+(?:\.\d+)?)")


def clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def normalize(beliefs: Beliefs) -> Beliefs:
    """
    归一化，使分数和为 1

    全部为 0 时退化为均匀分布；空分布保持为空。
    """
    if not beliefs:
        return {}
    total = sum(beliefs.values())
    if total <= 0:
        uniform = 1.0 / len(beliefs)
        return {cause_id: uniform for cause_id in beliefs}
    return {cause_id: score / total for cause_id, score in beliefs.items()}


def top_cause(beliefs: Beliefs) -> Tuple[Optional[str], float]:
    """
    分数最高的根因

    并列时取先出现者；空分布返回 (None, 0.0)。
    """
    best_id = None
    best_score = -1.0
    for cause_id, score in (beliefs or {}).items():
        if score > best_score:
            best_id, best_score = cause_id, score
    return best_id, max(best_score, 0.0)


def top_causes(beliefs: Beliefs, n: int) -> List[Tuple[str, float]]:
    """分数最高的 n 个根因（稳定排序，并列保持原顺序）"""
    ranked = sorted((beliefs or {}).items(), key=lambda item: item[1], reverse=True)
    return ranked[:n]


def extract_number(observation) -> Optional[float]:
    """
    提取数值

    数字直接返回；文本取第一个出现的数字；布尔值和无数字文本返回 None。
    """
    if isinstance(observation, bool) or observation is None:
        return None
    if isinstance(observation, (int, float)):
        return float(observation)
    match = NUMBER_PATTERN.search(str(observation))
    if match:
        return float(match.group(1))
    return None


def is_affirmative(observation) -> bool:
    """按布尔方式解读回答"""
    if observation is None:
        return False
    if isinstance(observation, bool):
        return observation
    if isinstance(observation, (int, float)):
        return observation != 0
    return bool(AFFIRMATIVE_PATTERN.search(str(observation)))


def is_abnormal(test: Optional[DiagnosticTest], observation) -> bool:
    """
    判定观察结果是否异常

    Args:
        test: 诊断测试（None 视为正常）
        observation: 用户回答，数字或自由文本

    Returns:
        是否异常
    """
    if test is None:
        return False

    rule = test.expected
    if rule.type == "boolean":
        return is_affirmative(observation)

    value = extract_number(observation)
    if value is None:
        # 无法解析出数值，按布尔方式解读
        return is_affirmative(observation)

    if rule.normal_min is not None and value < rule.normal_min:
        return True
    if rule.normal_max is not None and value > rule.normal_max:
        return True
    return False


class BeliefUpdater:
    """信念更新器"""

    def __init__(self, kb: KnowledgeBase, config: Optional[EngineConfig] = None):
        """
        初始化

        Args:
            kb: 知识库
            config: 引擎配置（系数）
        """
        self.kb = kb
        self.config = config or EngineConfig()

    def initialize(self, symptom_ids: Iterable[str]) -> Beliefs:
        """
        以先验初始化，并按命中症状加分

        Args:
            symptom_ids: 命中的症状 ID

        Returns:
            归一化后的分布
        """
        symptom_ids = set(symptom_ids)
        beliefs: Beliefs = {cause.id: cause.prior for cause in self.kb.causes}
        for edge in self.kb.edges.symptom_to_cause:
            if edge.symptom in symptom_ids:
                beliefs[edge.cause] = clamp01(
                    beliefs.get(edge.cause, 0.0) + self.config.symptom_boost * edge.weight
                )
        return normalize(beliefs)

    def observation_deltas(self, test_id: str, observation) -> Dict[str, float]:
        """
        一次测试结果对各根因的调整量（归一化前）

        Args:
            test_id: 测试 ID
            observation: 用户回答

        Returns:
            根因 ID -> 调整量
        """
        abnormal = is_abnormal(self.kb.get_test(test_id), observation)
        sign = 1.0 if abnormal else -1.0
        deltas: Dict[str, float] = {}
        for link in self.kb.links_for_test(test_id):
            deltas[link.cause] = deltas.get(link.cause, 0.0) + (
                sign * self.config.observation_step * link.discriminative
            )
        return deltas

    def update_with_observation(self, beliefs: Beliefs, test_id: str, observation) -> Beliefs:
        """
        根据测试结果更新分布

        Args:
            beliefs: 当前分布
            test_id: 测试 ID
            observation: 用户回答

        Returns:
            更新并归一化后的新分布
        """
        updated = dict(beliefs)
        for cause_id, delta in self.observation_deltas(test_id, observation).items():
            updated[cause_id] = clamp01(updated.get(cause_id, 0.0) + delta)
        return normalize(updated)

    def penalize(self, beliefs: Beliefs, cause_id: str, factor: Optional[float] = None) -> Beliefs:
        """修复验证失败时惩罚根因"""
        if factor is None:
            factor = self.config.penalty_factor
        updated = dict(beliefs)
        if cause_id in updated:
            updated[cause_id] *= factor
        return normalize(updated)

    def apply_artifact_boosts(self, beliefs: Beliefs, component_types: Iterable[str]) -> Beliefs:
        """
        按图纸中识别的部件类型给根因加固定分

        人工配置的粗粒度启发式映射，尽力而为；
        只作用于分布中已有的根因。

        Args:
            beliefs: 当前分布
            component_types: 部件类型列表

        Returns:
            更新并归一化后的新分布
        """
        types = [t.lower() for t in component_types if t]
        updated = dict(beliefs)
        for keyword, boost in self.config.artifact_boosts.items():
            if boost.cause not in updated:
                continue
            if any(keyword.lower() in t for t in types):
                updated[boost.cause] = clamp01(updated[boost.cause] + boost.increment)
        return normalize(updated)
