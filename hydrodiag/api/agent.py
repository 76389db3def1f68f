"""诊断对话 API 接口

POST /api/agent   处理一条用户消息，返回带 status 判别字段的结果
POST /api/upload  上传图纸/照片/PDF，返回 artifact_id

处理函数为普通 def：在线程池中执行，同一会话由对话管理器串行化。
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from pydantic import BaseModel

from hydrodiag.api.deps import get_dialogue_manager
from hydrodiag.core.dialogue_manager import TroubleshootingDialogueManager

logger = logging.getLogger(__name__)

# 创建路由
router = APIRouter()


class AgentRequest(BaseModel):
    """诊断消息请求"""

    text: str = ""
    session_id: str = "default"
    artifact_id: Optional[str] = None


@router.post("/agent")
def agent_message(
    request: AgentRequest,
    manager: TroubleshootingDialogueManager = Depends(get_dialogue_manager),
):
    """
    处理一条诊断消息

    Returns:
        status 为 continue / need_artifact / proposed_fix / diagnosis / reset / error 之一
    """
    result = manager.handle_message(
        request.text,
        request.session_id,
        artifact_id=request.artifact_id,
    )
    return result.model_dump(mode="json")


@router.post("/upload")
def upload_artifact(
    file: UploadFile = File(...),
    manager: TroubleshootingDialogueManager = Depends(get_dialogue_manager),
):
    """
    上传证据文件

    Returns:
        artifact_id 与推断的媒体类型
    """
    store = manager.upload_store
    if not store.is_accepted(file.filename):
        raise HTTPException(
            status_code=400,
            detail="Unsupported file type. Accepted: .png, .jpg, .jpeg, .pdf",
        )

    content = file.file.read()
    if not content:
        raise HTTPException(status_code=400, detail="No file")

    artifact_id = store.save(content, file.filename)
    return {
        "artifact_id": artifact_id,
        "media_type": store.media_type_for(artifact_id),
    }
