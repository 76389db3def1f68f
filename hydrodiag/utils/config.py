"""配置加载模块"""
import os
from pathlib import Path
from typing import Dict, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from hydrodiag.exceptions import ConfigError


class LLMConfig(BaseModel):
    """LLM 配置"""
    api_base: str
    api_key: str
    model: str
    vision_model: Optional[str] = None  # 图纸分析模型，默认同 model
    temperature: float = 0.2
    max_tokens: int = 4096
    system_prompt: str = ""
    timeout: float = 30.0  # 秒，超时视为调用失败
    max_retries: int = 3
    retry_delay: float = 1.0


class ArtifactBoostConfig(BaseModel):
    """图纸部件 -> 根因加分"""
    cause: str
    increment: float


class EngineConfig(BaseModel):
    """推理引擎配置

    系数均为经验值，保留为可配置参数。
    """
    # 置信度阈值
    high_confidence_threshold: float = 0.70  # 达到后直接提出修复方案
    low_confidence_threshold: float = 0.45   # 低于此值优先请求图纸
    # 信念更新系数
    symptom_boost: float = 0.3       # 症状命中: +symptom_boost × weight
    observation_step: float = 0.2    # 测试结果: ±observation_step × discriminative
    penalty_factor: float = 0.3      # 修复验证失败时的惩罚倍数
    # 测试选择
    top_n: int = 3                   # 只在 top-n 根因间区分
    # 兜底推理
    max_auto_loops: int = 3          # 兜底生成问题的最大轮数
    max_internal_steps: int = 8      # 单轮内部状态推进上限
    # 图纸部件类型关键字 -> 加分
    artifact_boosts: Dict[str, ArtifactBoostConfig] = Field(
        default_factory=lambda: {
            "relief": ArtifactBoostConfig(cause="relief_misadjusted", increment=0.1),
            "cylinder": ArtifactBoostConfig(cause="load_excessive", increment=0.05),
        }
    )


class KnowledgeConfig(BaseModel):
    """知识库配置"""
    kb_dir: Optional[str] = None          # 默认使用包内自带知识库
    scenarios_path: Optional[str] = None  # 默认使用包内自带场景库


class StorageConfig(BaseModel):
    """存储配置"""
    db_path: Optional[str] = None   # 默认 data/sessions.db（可用 DATA_DIR 覆盖）
    upload_dir: Optional[str] = None  # 默认 data/uploads


class WebConfig(BaseModel):
    """Web 服务配置"""
    host: str = "127.0.0.1"
    port: int = 8000


class Config(BaseModel):
    """全局配置"""
    llm: LLMConfig
    engine: EngineConfig = EngineConfig()
    knowledge: KnowledgeConfig = KnowledgeConfig()
    storage: StorageConfig = StorageConfig()
    web: WebConfig = WebConfig()


def load_config(config_path: Optional[str] = None) -> Config:
    """
    加载配置文件

    Args:
        config_path: 配置文件路径，默认按以下顺序查找：
                     1. 环境变量 CONFIG_PATH
                     2. 项目根目录的 config.yaml

    Returns:
        Config: 配置对象

    Raises:
        FileNotFoundError: 配置文件不存在
        ConfigError: 配置内容非法
    """
    if config_path is None:
        # 优先从环境变量读取
        config_path = os.environ.get("CONFIG_PATH")

    if config_path is None:
        # 默认使用项目根目录的 config.yaml
        project_root = Path(__file__).parent.parent.parent
        config_path = project_root / "config.yaml"

    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(
            f"配置文件不存在: {config_path}\n"
            f"请复制 config.yaml.example 并修改为 config.yaml"
        )

    with open(config_path, "r", encoding="utf-8") as f:
        try:
            config_dict = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"配置文件 YAML 非法: {config_path}: {e}") from e

    if not isinstance(config_dict, dict):
        raise ConfigError(f"配置文件顶层应为映射: {config_path}")

    try:
        return Config(**config_dict)
    except ValidationError as e:
        raise ConfigError(f"配置校验失败 ({config_path}): {e}") from e
