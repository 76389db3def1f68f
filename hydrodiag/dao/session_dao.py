"""Session DAO

负责 sessions 表的数据访问，即对话引擎使用的会话存储。

读出的数据统一经过 migrate_session_record；
迁移或自愈过的记录写回。
"""
import json
import logging
from typing import Any, Dict, List, Optional

from hydrodiag.dao.base import BaseDAO
from hydrodiag.models import DiagnosticSession, migrate_session_record

logger = logging.getLogger(__name__)


class SessionDAO(BaseDAO):
    """会话数据访问对象"""

    def get(self, session_id: str) -> DiagnosticSession:
        """
        获取会话状态，不存在时创建并保存默认会话

        Args:
            session_id: 会话 ID

        Returns:
            会话状态
        """
        row = self._fetch(session_id)
        if row is None:
            session = DiagnosticSession(session_id=session_id)
            self.save(session)
            logger.info("新建会话 %s", session_id)
            return session

        try:
            raw = json.loads(row["state_json"])
        except (TypeError, json.JSONDecodeError):
            logger.warning("会话 %s 的 JSON 已损坏，重置为默认值", session_id)
            raw = None

        session, repaired = migrate_session_record(session_id, raw)
        if repaired:
            logger.info("会话 %s 已迁移，写回存储", session_id)
            self.save(session)
        return session

    def exists(self, session_id: str) -> bool:
        """会话是否存在"""
        return self._fetch(session_id) is not None

    def save(self, session: DiagnosticSession) -> None:
        """
        保存会话（插入或覆盖）

        Args:
            session: 会话状态
        """
        state_json = json.dumps(session.to_dict(), ensure_ascii=False)
        with self.transaction() as (conn, cursor):
            cursor.execute(
                """
                INSERT INTO sessions (session_id, stage, state_json)
                VALUES (?, ?, ?)
                ON CONFLICT(session_id) DO UPDATE SET
                    stage = excluded.stage,
                    state_json = excluded.state_json,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (session.session_id, session.stage.value, state_json),
            )

    def reset(self, session_id: str) -> bool:
        """
        删除会话

        Args:
            session_id: 会话 ID

        Returns:
            是否删除了记录
        """
        with self.transaction() as (conn, cursor):
            cursor.execute("DELETE FROM sessions WHERE session_id = ?", (session_id,))
            deleted = cursor.rowcount > 0
        if deleted:
            logger.info("已重置会话 %s", session_id)
        return deleted

    def list_recent(self, limit: int = 10) -> List[Dict[str, Any]]:
        """
        列出最近的会话

        Args:
            limit: 返回数量

        Returns:
            会话列表（摘要信息）
        """
        with self.get_connection() as conn:
            cursor = conn.execute(
                """
                SELECT session_id, stage, created_at, updated_at
                FROM sessions
                ORDER BY updated_at DESC
                LIMIT ?
                """,
                (limit,),
            )
            return [dict(row) for row in cursor.fetchall()]

    def _fetch(self, session_id: str) -> Optional[Dict[str, Any]]:
        with self.get_connection() as conn:
            row = conn.execute(
                "SELECT session_id, state_json FROM sessions WHERE session_id = ?",
                (session_id,),
            ).fetchone()
            return dict(row) if row else None
