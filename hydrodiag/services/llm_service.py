"""LLM API 调用服务

使用 OpenAI SDK 调用兼容 OpenAI API 的 LLM 服务
"""
import re
import time
from typing import Any, Dict, List, Optional, Callable

import openai
from openai import APITimeoutError, APIConnectionError, RateLimitError

from hydrodiag.utils.config import Config


# 匹配 <think>...</think> 标签（支持多行）
THINK_TAG_PATTERN = re.compile(r"<think>.*?</think>\s*", re.DOTALL)

# 匹配 markdown 代码块包裹
CODE_FENCE_PATTERN = re.compile(r"^```\w*\n?|\n?```$")

# 进度回调类型
ProgressCallback = Callable[[str], None]


def strip_code_fence(content: str) -> str:
    """去除 ```json ... ``` 包裹"""
    content = (content or "").strip()
    if content.startswith("```"):
        content = CODE_FENCE_PATTERN.sub("", content)
    return content.strip()


class LLMService:
    """LLM 服务封装"""

    def __init__(
        self,
        config: Config,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        """
        初始化 LLM 服务

        Args:
            config: 全局配置对象
            progress_callback: 进度回调函数（用于报告重试等状态）
        """
        self.config = config
        self._progress_callback = progress_callback
        self.client = openai.OpenAI(
            api_key=config.llm.api_key,
            base_url=config.llm.api_base,
        )
        self.model = config.llm.model
        self.vision_model = config.llm.vision_model or self.model
        self.temperature = config.llm.temperature
        self.max_tokens = config.llm.max_tokens
        self.system_prompt = config.llm.system_prompt

        # 超时视为调用失败；仅对瞬时错误重试
        self.timeout = config.llm.timeout
        self.max_retries = max(1, config.llm.max_retries)
        self.retry_delay = config.llm.retry_delay

    def _report_progress(self, message: str):
        """报告进度"""
        if self._progress_callback:
            self._progress_callback(message)

    def _generate(
        self,
        messages: List[Dict[str, Any]],
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        model: Optional[str] = None,
        json_mode: bool = False,
    ) -> str:
        """内部方法：生成回复

        Args:
            messages: 对话消息列表 [{"role": "user", "content": "..."}, ...]
            system_prompt: 系统提示（可选，覆盖默认）
            temperature: 温度参数（可选，覆盖默认）
            model: 模型（可选，覆盖默认）
            json_mode: 是否要求返回 JSON 对象

        Returns:
            生成的回复文本

        Raises:
            Exception: 重试耗尽后仍失败
        """
        # 构建完整的消息列表
        full_messages = []

        # 添加系统提示
        if system_prompt is None:
            system_prompt = self.system_prompt

        if system_prompt:
            full_messages.append({"role": "system", "content": system_prompt})

        # 添加对话历史
        full_messages.extend(messages)

        extra = {}
        if json_mode:
            extra["response_format"] = {"type": "json_object"}

        # 带重试的 API 调用
        last_error = None
        for attempt in range(self.max_retries):
            try:
                response = self.client.chat.completions.create(
                    model=model or self.model,
                    messages=full_messages,
                    temperature=temperature if temperature is not None else self.temperature,
                    max_tokens=self.max_tokens,
                    timeout=self.timeout,
                    **extra,
                )
                return self._clean_response(response.choices[0].message.content)

            except (APITimeoutError, APIConnectionError, RateLimitError) as e:
                last_error = e
                error_type = type(e).__name__
                if attempt < self.max_retries - 1:
                    wait_time = self.retry_delay * (attempt + 1)
                    self._report_progress(
                        f"LLM 调用失败 ({error_type})，{wait_time}s 后重试 ({attempt + 1}/{self.max_retries})..."
                    )
                    time.sleep(wait_time)
                    continue
                else:
                    self._report_progress(
                        f"LLM 调用失败 ({error_type})，重试次数已用尽"
                    )
                    raise

        # 理论上不会到达这里
        if last_error:
            raise last_error
        return ""

    def _clean_response(self, content: str) -> str:
        """清理 LLM 响应

        - 去除 <think>...</think> 标签（模型的思考过程）
        - 去除首尾空白

        Args:
            content: 原始响应内容

        Returns:
            清理后的响应内容
        """
        if not content:
            return ""
        content = THINK_TAG_PATTERN.sub("", content)
        return content.strip()

    def generate_json(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        """生成 JSON 回复（单轮对话）

        Returns:
            去除代码块包裹后的 JSON 文本（未解析）
        """
        messages = [{"role": "user", "content": prompt}]
        content = self._generate(messages, system_prompt=system_prompt, json_mode=True)
        return strip_code_fence(content)

    def describe_image(
        self,
        prompt: str,
        data_url: str,
        system_prompt: Optional[str] = None,
    ) -> str:
        """图像理解（JSON 回复）

        Args:
            prompt: 文本指令
            data_url: base64 data URL
            system_prompt: 系统提示（可选）

        Returns:
            去除代码块包裹后的 JSON 文本（未解析）
        """
        messages = [{
            "role": "user",
            "content": [
                {"type": "text", "text": prompt},
                {"type": "image_url", "image_url": {"url": data_url}},
            ],
        }]
        content = self._generate(
            messages,
            system_prompt=system_prompt,
            model=self.vision_model,
            json_mode=True,
        )
        return strip_code_fence(content)
