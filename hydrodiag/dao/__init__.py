"""DAO 模块

提供数据访问对象，统一管理数据库操作
"""

from hydrodiag.dao.base import BaseDAO, get_default_db_path
from hydrodiag.dao.session_dao import SessionDAO

__all__ = [
    "BaseDAO",
    "get_default_db_path",
    "SessionDAO",
]
