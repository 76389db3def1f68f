"""会话存储单元测试"""
import json
import os
import sqlite3
from unittest.mock import MagicMock

import pytest

from hydrodiag.dao import BaseDAO, SessionDAO, get_default_db_path
from hydrodiag.models import DiagnosticSession, Stage
from hydrodiag.scripts.init_db import init_database


@pytest.fixture
def db_path(tmp_path):
    return init_database(str(tmp_path / "sessions.db"))


class TestBaseDAO:
    """BaseDAO 测试"""

    def test_default_db_path(self, monkeypatch):
        """测试: 默认数据库路径"""
        monkeypatch.delenv("DATA_DIR", raising=False)
        assert BaseDAO().db_path.endswith(os.path.join("data", "sessions.db"))

    def test_data_dir_env(self, monkeypatch, tmp_path):
        """测试: DATA_DIR 环境变量覆盖默认路径"""
        monkeypatch.setenv("DATA_DIR", str(tmp_path))
        assert get_default_db_path() == str(tmp_path / "sessions.db")

    def test_transaction_rolls_back(self, db_path):
        """测试: 事务异常时回滚"""
        dao = BaseDAO(db_path)

        with pytest.raises(RuntimeError):
            with dao.transaction() as (conn, cursor):
                cursor.execute(
                    "INSERT INTO sessions (session_id, state_json) VALUES (?, ?)", ("x", "{}")
                )
                raise RuntimeError("boom")

        with dao.get_connection() as conn:
            assert conn.execute("SELECT COUNT(*) FROM sessions").fetchone()[0] == 0


class TestInitDatabase:
    """数据库初始化测试"""

    def test_creates_sessions_table(self, tmp_path):
        """测试: 创建 sessions 表，可重复执行"""
        path = str(tmp_path / "nested" / "sessions.db")

        init_database(path)
        init_database(path)

        conn = sqlite3.connect(path)
        try:
            tables = [row[0] for row in conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table'"
            )]
        finally:
            conn.close()
        assert "sessions" in tables


class TestSessionDAO:
    """SessionDAO 测试"""

    def test_get_creates_default(self, db_path):
        """测试: 首次访问创建并保存默认会话"""
        dao = SessionDAO(db_path)

        session = dao.get("new")

        assert session.stage == Stage.INIT
        assert dao.exists("new")

    def test_save_and_get(self, db_path):
        """测试: 保存后读出一致"""
        dao = SessionDAO(db_path)
        session = DiagnosticSession(
            session_id="s1",
            stage=Stage.GATHERING,
            history=["slow"],
            beliefs={"pump_wear": 0.7, "cylinder_leak": 0.3},
            pending_test_id="case_drain",
        )

        dao.save(session)

        assert dao.get("s1") == session

    def test_save_overwrites(self, db_path):
        """测试: 重复保存覆盖"""
        dao = SessionDAO(db_path)
        session = DiagnosticSession(session_id="s1")
        dao.save(session)

        dao.save(session.model_copy(update={"stage": Stage.RESOLVED}))

        assert dao.get("s1").stage == Stage.RESOLVED
        assert dao.list_recent()[0]["stage"] == "resolved"

    def test_reset(self, db_path):
        """测试: 删除会话，再次删除返回 False"""
        dao = SessionDAO(db_path)
        dao.save(DiagnosticSession(session_id="s1"))

        assert dao.reset("s1") is True
        assert dao.exists("s1") is False
        assert dao.reset("s1") is False

    def test_corrupt_json_self_heals(self, db_path):
        """测试: 损坏的 JSON 自愈为默认会话并写回"""
        dao = SessionDAO(db_path)
        with dao.transaction() as (conn, cursor):
            cursor.execute(
                "INSERT INTO sessions (session_id, state_json) VALUES (?, ?)", ("bad", "{oops")
            )

        session = dao.get("bad")

        assert session.stage == Stage.INIT
        with dao.get_connection() as conn:
            stored = conn.execute(
                "SELECT state_json FROM sessions WHERE session_id = ?", ("bad",)
            ).fetchone()[0]
        assert json.loads(stored)["session_id"] == "bad"

    def test_legacy_record_migrated_on_load(self, db_path):
        """测试: 旧格式记录读出时迁移"""
        dao = SessionDAO(db_path)
        legacy = {"stage": "proposing", "proposedCauseId": "pump_wear", "history": ["slow"]}
        with dao.transaction() as (conn, cursor):
            cursor.execute(
                "INSERT INTO sessions (session_id, stage, state_json) VALUES (?, ?, ?)",
                ("old", "proposing", json.dumps(legacy)),
            )

        session = dao.get("old")

        assert session.stage == Stage.VERIFYING
        assert session.proposed_cause_id == "pump_wear"
        assert dao.list_recent()[0]["stage"] == "verifying"

    def test_invalid_current_version_record_written_back(self, db_path):
        """测试: 版本号正确但校验失败的记录自愈后写回"""
        dao = SessionDAO(db_path)
        broken = DiagnosticSession(session_id="v2", stage=Stage.GATHERING).to_dict()
        broken["artifacts"] = [{"bad": 1}]
        with dao.transaction() as (conn, cursor):
            cursor.execute(
                "INSERT INTO sessions (session_id, stage, state_json) VALUES (?, ?, ?)",
                ("v2", "gathering", json.dumps(broken)),
            )

        session = dao.get("v2")

        with dao.get_connection() as conn:
            stored = json.loads(conn.execute(
                "SELECT state_json FROM sessions WHERE session_id = ?", ("v2",)
            ).fetchone()[0])
        assert session.stage == Stage.INIT
        assert stored == session.to_dict()

    def test_clean_record_not_rewritten(self, db_path):
        """测试: 无需迁移的记录读出时不写回"""
        dao = SessionDAO(db_path)
        dao.save(DiagnosticSession(session_id="s1", history=["slow"]))
        dao.save = MagicMock(wraps=dao.save)

        dao.get("s1")

        dao.save.assert_not_called()

    def test_list_recent_limit(self, db_path):
        """测试: 列出最近会话"""
        dao = SessionDAO(db_path)
        for i in range(3):
            dao.save(DiagnosticSession(session_id=f"s{i}"))

        assert len(dao.list_recent(limit=2)) == 2
