"""假设生成服务

知识图谱无法给出结论时，由 LLM 进行开放式推理。
调用失败、超时、返回不可解析时都降级为零置信度空结果，不向上抛出。
"""
import json
import logging
from abc import ABC, abstractmethod

from pydantic import ValidationError

from hydrodiag.models import HypothesisOutcome, HypothesisRequest, HypothesisResult
from hydrodiag.services.llm_service import LLMService, strip_code_fence
from hydrodiag.services.scenario_retriever import format_scenarios

logger = logging.getLogger(__name__)

RESULT_FIELDS = (
    "clarifying_questions",
    "diagnostic_steps",
    "likely_cause",
    "recommended_solution",
    "failure_mode_tags",
    "confidence",
    "rationale",
)


class HypothesisGenerator(ABC):
    """假设生成能力接口"""

    @abstractmethod
    def generate(self, request: HypothesisRequest) -> HypothesisOutcome:
        """生成结构化假设，实现方不得抛出异常"""


def parse_hypothesis_response(raw: str) -> HypothesisResult:
    """
    解析 LLM 响应

    Args:
        raw: LLM 响应文本

    Returns:
        结构化结果；无法解析时为携带原文的零置信度空结果
    """
    text = strip_code_fence(raw)
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return HypothesisResult.empty(raw_text=raw)

    if not isinstance(data, dict):
        return HypothesisResult.empty(raw_text=raw)

    try:
        return HypothesisResult(**{k: data[k] for k in RESULT_FIELDS if k in data})
    except ValidationError:
        return HypothesisResult.empty(raw_text=raw)


class LLMHypothesisGenerator(HypothesisGenerator):
    """基于 LLM 的假设生成器"""

    SYSTEM_PROMPT = """You are a hydraulic diagnostics expert.
Return ONLY strict minified JSON with this schema (no markdown, no extra text):
{
  "clarifying_questions": string[],
  "diagnostic_steps": string[],
  "likely_cause": string|null,
  "recommended_solution": string|null,
  "failure_mode_tags": string[],
  "confidence": number
}
Rules:
- Use the signals and retrieved scenarios to craft targeted checks.
- Steps must be concrete: specify port, tool, expected values, and decision criteria.
- If overall confidence < 0.6, set likely_cause to null and include 2-3 clarifying_questions.
- Do not hallucinate specifications. If unknown, ask for the spec or cite a general check."""

    def __init__(self, llm_service: LLMService):
        """初始化

        Args:
            llm_service: LLM 服务
        """
        self.llm_service = llm_service

    def generate(self, request: HypothesisRequest) -> HypothesisOutcome:
        """生成假设

        Args:
            request: 问题描述、top 根因、问答对、相似场景

        Returns:
            HypothesisOutcome
        """
        prompt = self._build_user_prompt(request)

        try:
            raw = self.llm_service.generate_json(prompt, system_prompt=self.SYSTEM_PROMPT)
        except Exception as e:
            logger.warning("假设生成调用失败: %s: %s", type(e).__name__, e)
            return HypothesisOutcome(failure=f"{type(e).__name__}: {e}")

        result = parse_hypothesis_response(raw)
        if result.raw_text is not None:
            logger.warning("假设生成返回无法解析: %.200s", raw)
            return HypothesisOutcome(result=result, failure="unparsable response")
        return HypothesisOutcome(result=result)

    def _build_user_prompt(self, request: HypothesisRequest) -> str:
        """构建用户 prompt"""
        top_causes = "\n".join(
            f"{cause_id}: {score:.2f}" for cause_id, score in request.top_causes
        )
        answers = "\n".join(f"Q: {q}\nA: {a}" for q, a in request.qa_pairs)

        return f"""Issue: {request.issue}

Brain context (top candidates):
{top_causes or 'none'}

Prior answers:
{answers or 'None'}

Relevant knowledge:
{format_scenarios(request.scenarios)}"""
