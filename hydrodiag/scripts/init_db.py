"""数据库初始化脚本

创建会话存储使用的 SQLite 表结构

表结构：
- 会话表：sessions
"""
import sqlite3
from pathlib import Path
from typing import Optional

from hydrodiag.dao.base import get_default_db_path


# 数据库 schema SQL
SCHEMA_SQL = """
-- 会话表（每个会话一行，状态整体以 JSON 存储）
CREATE TABLE IF NOT EXISTS sessions (
    session_id TEXT PRIMARY KEY,
    stage TEXT NOT NULL DEFAULT 'init',    -- 当前诊断阶段（冗余字段，便于查询）
    state_json TEXT NOT NULL,              -- 会话状态（JSON，带 schema_version）
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

-- 为 sessions 创建索引
CREATE INDEX IF NOT EXISTS idx_sessions_updated_at ON sessions(updated_at);
CREATE INDEX IF NOT EXISTS idx_sessions_stage ON sessions(stage);
"""


def init_database(db_path: Optional[str] = None) -> str:
    """
    初始化数据库，创建所有表结构（可重复执行）

    Args:
        db_path: 数据库文件路径，默认为 data/sessions.db

    Returns:
        实际使用的数据库路径
    """
    if db_path is None:
        db_path = get_default_db_path()

    # 确保目录存在
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path)
    try:
        conn.executescript(SCHEMA_SQL)
        conn.commit()
    finally:
        conn.close()

    return db_path


if __name__ == "__main__":
    path = init_database()
    print(f"数据库已初始化: {path}")
