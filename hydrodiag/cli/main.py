"""CLI 主程序

使用 Rich 库美化 CLI 输出。

运行方式：
    python -m hydrodiag cli
"""
import logging
import uuid
from pathlib import Path
from typing import Optional, Tuple

from rich.console import Console
from rich.padding import Padding
from rich.text import Text

from hydrodiag.cli.rendering import TurnRenderer
from hydrodiag.core.dialogue_manager import TroubleshootingDialogueManager
from hydrodiag.models import DiagnosisResult, NeedArtifactResult, Stage, TurnResult


class DiagnosisCLI:
    """交互式诊断 CLI"""

    COMMANDS = "/help /status /upload /reset /exit"

    def __init__(
        self,
        dialogue_manager: Optional[TroubleshootingDialogueManager] = None,
        console: Optional[Console] = None,
    ):
        """
        初始化

        Args:
            dialogue_manager: 对话管理器，为 None 时按 config.yaml 构建
            console: Rich Console
        """
        self.console = console or Console()
        self.renderer = TurnRenderer(self.console)

        if dialogue_manager is None:
            from hydrodiag.core.bootstrap import build_dialogue_manager
            from hydrodiag.utils.config import load_config
            dialogue_manager = build_dialogue_manager(
                load_config(), progress_callback=self._print_progress
            )
        self.dialogue_manager = dialogue_manager

        self.session_id = self._new_session_id()
        self.round_count = 0
        # 已上传但尚未提交的图纸 (artifact_id, 文件名)
        self.pending_artifact: Optional[Tuple[str, str]] = None

    @staticmethod
    def _new_session_id() -> str:
        return f"cli-{uuid.uuid4().hex[:12]}"

    def _print_indented(self, content, num_spaces: int = 2) -> None:
        """打印带缩进的 Rich 对象"""
        self.console.print(Padding(content, (0, 0, 0, num_spaces)))

    def _print_progress(self, message: str) -> None:
        self._print_indented(Text(f"→ {message}", style="dim"))

    def run(self):
        """运行 CLI 主循环"""
        self.console.print()
        self.console.print(Text(self.renderer.get_logo(), style="bold blue"))
        self.console.print(Text("液压系统故障诊断", style="bold blue"))
        self.console.print(Text(f"可用命令: {self.COMMANDS}", style="dim"))
        self.console.print()
        self.console.print(Text("请描述您遇到的液压系统问题开始诊断。", style="bold yellow"))
        self.console.print()

        try:
            while True:
                try:
                    user_input = self.console.input("[bold blue]> [/bold blue]").strip()
                except EOFError:
                    self.console.print(Text("\n再见！\n", style="blue"))
                    break

                if not user_input:
                    continue

                if user_input.startswith("/"):
                    if self.handle_command(user_input):
                        break
                    continue

                self.send(user_input)

        except KeyboardInterrupt:
            self.console.print(Text("\n再见！\n", style="blue"))

    def handle_command(self, command: str) -> bool:
        """处理命令，返回 True 表示退出"""
        name, _, arg = command.strip().partition(" ")
        name = name.lower()

        if name == "/help":
            self.console.print(self.renderer.render_help())
        elif name == "/status":
            snapshot = self.dialogue_manager.get_session(self.session_id)
            self._print_indented(self.renderer.render_status(snapshot))
        elif name == "/reset":
            self.send("reset")
            self.round_count = 0
            self.pending_artifact = None
        elif name == "/upload":
            self.upload(arg.strip())
        elif name == "/exit":
            self.console.print(Text("再见！", style="blue"))
            return True
        else:
            text = Text()
            text.append(f"未知命令: {name}", style="red")
            text.append("，输入 /help 查看可用命令")
            self.console.print(text)
        return False

    def upload(self, path_str: str) -> Optional[TurnResult]:
        """上传本地文件并提交给诊断引擎"""
        if not path_str:
            self.console.print(Text("用法: /upload <文件路径>", style="yellow"))
            return None

        path = Path(path_str).expanduser()
        store = self.dialogue_manager.upload_store
        if not path.is_file():
            self.console.print(Text(f"文件不存在: {path}", style="red"))
            return None
        if not store.is_accepted(path.name):
            self.console.print(Text("不支持的文件类型（支持 .png .jpg .jpeg .pdf）", style="red"))
            return None

        artifact_id = store.save(path.read_bytes(), path.name)
        self._print_indented(Text(f"已上传: {artifact_id}", style="dim"))

        # 仅在等待图纸阶段提交
        snapshot = self.dialogue_manager.get_session(self.session_id)
        if not snapshot or snapshot.get("stage") != Stage.AWAITING_ARTIFACTS.value:
            self.pending_artifact = (artifact_id, path.name)
            self._print_indented(Text("图纸已保存，将在系统请求图纸时自动提交。", style="yellow"))
            return None
        return self._submit_artifact(artifact_id, path.name)

    def _submit_artifact(self, artifact_id: str, filename: str) -> TurnResult:
        self.pending_artifact = None
        return self.send(f"uploaded {filename}", artifact_id=artifact_id)

    def send(self, text: str, artifact_id: Optional[str] = None) -> TurnResult:
        """发送一条消息并渲染结果"""
        self.round_count += 1
        self.console.print()
        self.console.print(Text.from_markup(f"[bold]• 第 {self.round_count} 轮[/bold]"))

        result = self.dialogue_manager.handle_message(
            text, self.session_id, artifact_id=artifact_id
        )
        self._print_indented(self.renderer.render(result))
        self.console.print()

        if isinstance(result, DiagnosisResult):
            self.console.print(Text("诊断已结束，输入 /reset 开始新的诊断。", style="dim"))
        elif isinstance(result, NeedArtifactResult) and self.pending_artifact:
            artifact_id, filename = self.pending_artifact
            self._print_indented(Text(f"提交已上传的图纸: {filename}", style="dim"))
            return self._submit_artifact(artifact_id, filename)
        return result


def main():
    """CLI 入口"""
    logging.basicConfig(
        level=logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    DiagnosisCLI().run()


if __name__ == "__main__":
    main()
