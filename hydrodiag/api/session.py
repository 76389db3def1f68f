"""会话查询 API 接口"""
from fastapi import APIRouter, Depends, HTTPException

from hydrodiag.api.deps import get_dialogue_manager
from hydrodiag.core.dialogue_manager import TroubleshootingDialogueManager

# 创建路由
router = APIRouter()


@router.get("/sessions")
def list_sessions(
    limit: int = 10,
    manager: TroubleshootingDialogueManager = Depends(get_dialogue_manager),
):
    """列出最近更新的会话"""
    sessions = manager.list_sessions(limit)
    return {"sessions": sessions, "total": len(sessions)}


@router.get("/sessions/{session_id}")
def get_session(
    session_id: str,
    manager: TroubleshootingDialogueManager = Depends(get_dialogue_manager),
):
    """
    获取会话详情

    包括当前阶段、已问测试、被否定的根因和 top 根因。
    """
    snapshot = manager.get_session(session_id)
    if snapshot is None:
        raise HTTPException(status_code=404, detail="会话不存在")
    return snapshot
