"""证据分析服务

识别液压图纸中的部件和连接。尽力而为：任何失败都返回空结构。
"""
import base64
import json
import logging
from abc import ABC, abstractmethod

from pydantic import ValidationError

from hydrodiag.models import ArtifactAnalysis, ArtifactOutcome
from hydrodiag.services.llm_service import LLMService, strip_code_fence

logger = logging.getLogger(__name__)


class ArtifactAnalyzer(ABC):
    """证据分析能力接口"""

    @abstractmethod
    def analyze(self, content: bytes, media_type: str) -> ArtifactOutcome:
        """分析上传文件，实现方不得抛出异常"""


def parse_artifact_response(raw: str) -> ArtifactAnalysis:
    """
    解析图纸分析结果

    Raises:
        ValueError: 无法解析
    """
    data = json.loads(strip_code_fence(raw))
    if not isinstance(data, dict):
        raise ValueError("artifact response is not an object")

    components = [c for c in data.get("components") or [] if isinstance(c, dict)]
    connections = []
    for pair in data.get("connections") or []:
        if isinstance(pair, (list, tuple)) and len(pair) == 2:
            connections.append([str(pair[0]), str(pair[1])])
    try:
        return ArtifactAnalysis(components=components, connections=connections)
    except ValidationError as e:
        raise ValueError(str(e)) from e


class LLMArtifactAnalyzer(ArtifactAnalyzer):
    """基于多模态 LLM 的图纸分析器"""

    SYSTEM_PROMPT = """You are reading a hydraulic schematic. Return ONLY minified JSON:
{"components":[{"label":string,"type":string}], "connections":[[string,string], ...]}
Types: pump, relief_valve, check_valve, filter, pressure_line, return_line, manifold, directional_valve, cylinder, motor, accumulator, cooler, pressure_gauge."""

    USER_PROMPT = "Extract components and connections."

    def __init__(self, llm_service: LLMService):
        """初始化

        Args:
            llm_service: LLM 服务
        """
        self.llm_service = llm_service

    def analyze(self, content: bytes, media_type: str) -> ArtifactOutcome:
        """分析图纸

        Args:
            content: 文件内容
            media_type: 媒体类型（image/png, image/jpeg, application/pdf）

        Returns:
            ArtifactOutcome
        """
        if not content:
            return ArtifactOutcome(failure="empty artifact")

        data_url = f"data:{media_type};base64,{base64.b64encode(content).decode('ascii')}"

        try:
            raw = self.llm_service.describe_image(
                self.USER_PROMPT, data_url, system_prompt=self.SYSTEM_PROMPT
            )
            analysis = parse_artifact_response(raw)
        except Exception as e:
            logger.warning("图纸分析失败: %s: %s", type(e).__name__, e)
            return ArtifactOutcome(failure=f"{type(e).__name__}: {e}")

        logger.info(
            "图纸分析完成: %d 部件, %d 连接",
            len(analysis.components), len(analysis.connections),
        )
        return ArtifactOutcome(analysis=analysis)
