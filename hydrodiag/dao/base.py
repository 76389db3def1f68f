"""DAO 基类

SQLite 连接管理。每次操作独立连接，写操作通过 transaction() 提交或回滚。
"""
import os
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Tuple


def get_default_db_path() -> str:
    """获取默认数据库路径

    优先从环境变量 DATA_DIR 读取，否则使用项目根目录的 data/sessions.db
    """
    data_dir = os.environ.get("DATA_DIR")
    if data_dir:
        return str(Path(data_dir) / "sessions.db")
    project_root = Path(__file__).parent.parent.parent
    return str(project_root / "data" / "sessions.db")


class BaseDAO:
    """DAO 基类"""

    # 等待其他连接释放写锁的秒数
    BUSY_TIMEOUT = 10.0

    def __init__(self, db_path: Optional[str] = None):
        """
        初始化 DAO

        Args:
            db_path: 数据库路径，如果为 None 则使用默认路径（优先环境变量 DATA_DIR）
        """
        self.db_path = db_path or get_default_db_path()

    @contextmanager
    def get_connection(self) -> Iterator[sqlite3.Connection]:
        """
        获取数据库连接（按列名访问行）

        Yields:
            sqlite3.Connection
        """
        conn = sqlite3.connect(self.db_path, timeout=self.BUSY_TIMEOUT)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Iterator[Tuple[sqlite3.Connection, sqlite3.Cursor]]:
        """
        写事务：正常退出提交，异常回滚

        Yields:
            tuple: (connection, cursor)
        """
        with self.get_connection() as conn:
            cursor = conn.cursor()
            try:
                yield conn, cursor
                conn.commit()
            except Exception:
                conn.rollback()
                raise
