"""对话结果渲染

把各类 TurnResult 渲染为 Rich 对象，由调用方决定如何输出。
"""
from typing import Any, Dict, List, Optional, Tuple

from rich.console import Console, Group
from rich.markdown import Markdown
from rich.panel import Panel
from rich.text import Text

from hydrodiag.models import (
    ContinueResult,
    DiagnosisResult,
    ErrorResult,
    NeedArtifactResult,
    ProposedFixResult,
    ResetResult,
    TurnResult,
)


class TurnRenderer:
    """诊断结果渲染器

    所有方法返回 Rich 可渲染对象。
    """

    LOGO = """
██╗  ██╗██╗   ██╗██████╗ ██████╗  ██████╗ ██████╗ ██╗ █████╗  ██████╗
██║  ██║╚██╗ ██╔╝██╔══██╗██╔══██╗██╔═══██╗██╔══██╗██║██╔══██╗██╔════╝
███████║ ╚████╔╝ ██║  ██║██████╔╝██║   ██║██║  ██║██║███████║██║  ███╗
██╔══██║  ╚██╔╝  ██║  ██║██╔══██╗██║   ██║██║  ██║██║██╔══██║██║   ██║
██║  ██║   ██║   ██████╔╝██║  ██║╚██████╔╝██████╔╝██║██║  ██║╚██████╔╝
╚═╝  ╚═╝   ╚═╝   ╚═════╝ ╚═╝  ╚═╝ ╚═════╝ ╚═════╝ ╚═╝╚═╝  ╚═╝ ╚═════╝
"""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def get_logo(self) -> str:
        return self.LOGO.strip()

    def render(self, result: TurnResult):
        """按 status 分派渲染"""
        if isinstance(result, ContinueResult):
            return self.render_question(result)
        if isinstance(result, NeedArtifactResult):
            return self.render_artifact_request(result)
        if isinstance(result, ProposedFixResult):
            return self.render_proposed_fix(result)
        if isinstance(result, DiagnosisResult):
            return self.render_diagnosis(result)
        if isinstance(result, ResetResult):
            return Text("已重置会话，请重新描述问题", style="green")
        if isinstance(result, ErrorResult):
            return Text(f"[{result.stage.value}] {result.message}", style="red")
        return Text(str(result))

    def render_question(self, result: ContinueResult) -> Group:
        """渲染下一个问题"""
        parts = []
        title = Text()
        title.append("? ", style="bold yellow")
        title.append(result.next_question, style="bold")
        parts.append(title)
        if result.test_id:
            parts.append(Text(f"    测试: {result.test_id}", style="dim"))
        if result.safety:
            parts.append(Text(f"    ⚠ {result.safety}", style="yellow"))
        return Group(*parts)

    def render_artifact_request(self, result: NeedArtifactResult) -> Group:
        """渲染图纸上传请求"""
        parts = [Text(result.request, style="bold yellow")]
        for tip in result.tips:
            parts.append(Text(f"    - {tip}", style="dim"))
        parts.append(Text(""))
        parts.append(Text(
            f"使用 /upload <文件路径> 上传（支持: {', '.join(result.accept)}）",
            style="dim",
        ))
        return Group(*parts)

    def render_proposed_fix(self, result: ProposedFixResult) -> Panel:
        """渲染修复方案"""
        info = Text()
        info.append("根因: ", style="bold")
        info.append(result.cause, style="green bold")
        if result.component:
            info.append(f"  ({result.component})", style="dim")
        info.append("\n")
        info.append(self._render_confidence_bar(result.confidence))

        md_parts = []
        if result.diagnostic_steps:
            md_parts.append("### 确认步骤\n")
            for i, step in enumerate(result.diagnostic_steps, 1):
                md_parts.append(f"{i}. {step}\n")
            md_parts.append("\n")
        if result.recommended_solution:
            md_parts.append("### 修复方案\n")
            md_parts.append(f"{result.recommended_solution}\n")

        content = [info, Text("")]
        if md_parts:
            content.append(Markdown("".join(md_parts), justify="left"))
        content.append(Text(""))
        content.append(Text(result.verify, style="bold yellow"))

        return Panel(
            Group(*content),
            title="建议修复",
            title_align="left",
            border_style="yellow",
            width=min(100, self.console.width),
            padding=(1, 2),
        )

    def render_diagnosis(self, result: DiagnosisResult) -> Panel:
        """渲染最终诊断"""
        r = result.result
        info = Text()
        info.append("根因: ", style="bold")
        info.append(f"{r.likely_cause or '未确定'}\n", style="green bold")
        info.append(self._render_confidence_bar(r.confidence))

        md_parts = []
        if r.diagnostic_steps:
            md_parts.append("### 诊断步骤\n")
            for i, step in enumerate(r.diagnostic_steps, 1):
                md_parts.append(f"{i}. {step}\n")
            md_parts.append("\n")
        if r.recommended_solution:
            md_parts.append("### 修复方案\n")
            md_parts.append(f"{r.recommended_solution}\n\n")
        if r.rationale:
            md_parts.append("### 依据\n")
            md_parts.append(f"{r.rationale}\n")

        content = [info, Text("")]
        if md_parts:
            content.append(Markdown("".join(md_parts), justify="left"))
        if r.failure_mode_tags:
            content.append(Text(f"标签: {', '.join(r.failure_mode_tags)}", style="cyan"))

        resolved = r.confidence > 0 or bool(r.likely_cause)
        return Panel(
            Group(*content),
            title="✓ 诊断完成" if resolved else "⚠ 诊断完成（信息不足）",
            title_align="left",
            border_style="green" if resolved else "yellow",
            width=min(100, self.console.width),
            padding=(1, 2),
        )

    def render_status(self, snapshot: Optional[Dict[str, Any]]) -> Group:
        """渲染会话状态"""
        if not snapshot:
            return Group(Text("还没有开始诊断会话", style="yellow"))

        stats = Text()
        stats.append("阶段 ", style="dim")
        stats.append(snapshot["stage"], style="bold")
        stats.append("  │  ", style="dim")
        stats.append("已问测试 ", style="dim")
        stats.append(str(len(snapshot["asked_tests"])), style="bold")
        stats.append("  │  ", style="dim")
        stats.append("已否定 ", style="dim")
        stats.append(str(len(snapshot["tried_causes"])), style="bold red")
        stats.append("  │  ", style="dim")
        stats.append("图纸 ", style="dim")
        stats.append(str(len(snapshot["artifacts"])), style="bold")

        parts = [stats, Text("")]
        hypotheses: List[Tuple[float, str]] = [
            (item["score"], item["cause"]) for item in snapshot.get("top_causes", [])
        ]
        if hypotheses:
            for i, (score, cause) in enumerate(hypotheses, 1):
                line = Text()
                line.append(f"{i}. ", style="dim")
                line.append(self._render_confidence_bar(score))
                line.append(f" {cause}")
                parts.append(line)
        else:
            parts.append(Text("暂无假设", style="dim"))
        return Group(*parts)

    def render_help(self) -> Panel:
        help_text = """
**可用命令：**
- `/help` - 显示此帮助
- `/status` - 查看当前诊断状态
- `/upload <path>` - 上传液压原理图/照片/PDF
- `/reset` - 重新开始诊断
- `/exit` - 退出程序

直接输入故障描述或测试结果即可继续诊断。验证修复时回答 yes / no。
        """
        return Panel(
            Markdown(help_text.strip()),
            title="帮助",
            title_align="left",
            border_style="blue",
        )

    @staticmethod
    def _render_confidence_bar(conf: float) -> Text:
        bar_filled = int(round(conf * 10))
        line = Text()
        line.append("█" * bar_filled, style="green")
        line.append("░" * (10 - bar_filled), style="dim")
        line.append(f" {conf:.0%}", style="bold")
        return line
