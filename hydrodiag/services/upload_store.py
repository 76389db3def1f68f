"""上传文件存储

上传的证据文件保存在 upload_dir 下，artifact_id 即文件名。
"""
import logging
import os
import time
import uuid
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)

MEDIA_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".pdf": "application/pdf",
}


def get_default_upload_dir() -> str:
    """获取默认上传目录

    优先从环境变量 DATA_DIR 读取，否则使用项目根目录的 data/uploads
    """
    data_dir = os.environ.get("DATA_DIR")
    if data_dir:
        return str(Path(data_dir) / "uploads")
    project_root = Path(__file__).parent.parent.parent
    return str(project_root / "data" / "uploads")


class UploadStore:
    """上传文件存储"""

    def __init__(self, upload_dir: Optional[Union[str, Path]] = None):
        """
        初始化

        Args:
            upload_dir: 上传目录，为 None 时使用默认目录
        """
        self.upload_dir = Path(upload_dir or get_default_upload_dir())

    def save(self, content: bytes, filename: str) -> str:
        """
        保存上传文件

        Args:
            content: 文件内容
            filename: 原始文件名（只取扩展名）

        Returns:
            artifact_id
        """
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        ext = Path(filename or "").suffix.lower()
        artifact_id = f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:10]}{ext}"
        (self.upload_dir / artifact_id).write_bytes(content)
        logger.info("已保存上传文件: %s (%d bytes)", artifact_id, len(content))
        return artifact_id

    def resolve(self, artifact_id: str) -> Optional[Path]:
        """
        artifact_id -> 文件路径

        Returns:
            文件路径；不存在或越出上传目录时返回 None
        """
        if not artifact_id or Path(artifact_id).name != artifact_id:
            return None
        path = self.upload_dir / artifact_id
        if not path.is_file():
            return None
        return path

    @staticmethod
    def media_type_for(path: Union[str, Path]) -> str:
        """根据扩展名推断媒体类型"""
        return MEDIA_TYPES.get(Path(path).suffix.lower(), "application/octet-stream")

    @staticmethod
    def is_accepted(filename: str) -> bool:
        """是否为支持的文件类型"""
        return Path(filename or "").suffix.lower() in MEDIA_TYPES
