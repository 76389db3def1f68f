"""hydrodiag 命令行入口

使用方式：
    python -m hydrodiag cli            # 启动交互式 CLI 诊断
    python -m hydrodiag api            # 启动 FastAPI 服务
    python -m hydrodiag init           # 初始化会话数据库
    python -m hydrodiag check-kb       # 校验知识库
"""
import sys

import click


@click.group()
def main():
    """液压系统故障诊断助手"""
    pass


@main.command("cli")
def interactive_cli():
    """启动交互式命令行诊断"""
    from hydrodiag.cli.main import main as cli_main
    from hydrodiag.exceptions import HydrodiagError

    try:
        cli_main()
    except (FileNotFoundError, HydrodiagError) as e:
        click.echo(f"\n[ERROR] 启动失败: {e}", err=True)
        sys.exit(1)


@main.command("api")
@click.option(
    "--host",
    default="127.0.0.1",
    help="服务监听地址",
)
@click.option(
    "--port",
    default=8000,
    type=int,
    help="服务监听端口",
)
def serve(host: str, port: int):
    """启动 FastAPI 服务"""
    import uvicorn
    from hydrodiag.api.main import app

    click.echo(f"正在启动服务: http://{host}:{port}")
    click.echo(f"API 文档: http://{host}:{port}/docs")
    uvicorn.run(app, host=host, port=port)


@main.command()
@click.option(
    "--db",
    default=None,
    help="数据库文件路径（默认: data/sessions.db）",
)
def init(db: str):
    """初始化会话数据库（创建表结构）"""
    from hydrodiag.scripts.init_db import init_database

    try:
        path = init_database(db)
        click.echo(f"\n[OK] 数据库初始化成功: {path}")
    except Exception as e:
        click.echo(f"\n[ERROR] 初始化失败: {e}", err=True)
        sys.exit(1)


@main.command("check-kb")
@click.option(
    "--kb-dir",
    default=None,
    type=click.Path(exists=True, file_okay=False),
    help="知识库目录（默认: 包内自带知识库）",
)
def check_kb(kb_dir: str):
    """校验知识库并输出统计"""
    from hydrodiag.core.knowledge_base import KnowledgeBase
    from hydrodiag.exceptions import KnowledgeBaseError

    try:
        kb = KnowledgeBase.load(kb_dir) if kb_dir else KnowledgeBase.default()
    except KnowledgeBaseError as e:
        click.echo(f"\n[ERROR] 知识库无效: {e}", err=True)
        sys.exit(1)

    for name, count in kb.summary().items():
        click.echo(f"  {name:<18} {count}")
    click.echo("\n[OK] 知识库校验通过")


if __name__ == "__main__":
    main()
