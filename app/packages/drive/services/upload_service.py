"""上传服务：校验 → 写入对象存储 → 记录文件节点。

校验顺序固定：身份、文件本身、MIME 类型、父目录；类型不合法时不会触达存储。
节点写库失败时会回收刚上传的对象，避免存储中残留无主文件。
"""

from __future__ import annotations

import mimetypes
import uuid
from pathlib import PurePosixPath
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.packages.drive.core.config import get_settings
from app.packages.drive.core.constants import ALLOWED_MIME_PREFIXES, ALLOWED_MIME_TYPES
from app.packages.drive.core.exceptions import UnsupportedTypeError, ValidationError
from app.packages.drive.core.logger import logger
from app.packages.drive.crud.file_node import file_node_crud
from app.packages.drive.models.file_node import FileNode
from app.packages.drive.services.file_service import file_service, require_user
from app.packages.drive.services.storage_backends import StorageBackend, get_storage_backend


def is_allowed_mime(mime_type: Optional[str]) -> bool:
    mime = (mime_type or "").split(";")[0].strip().lower()
    if not mime:
        return False
    return mime in ALLOWED_MIME_TYPES or mime.startswith(ALLOWED_MIME_PREFIXES)


class UploadService:
    def destination_folder(self, *, user_id: str, parent_id: Optional[str]) -> str:
        """根目录：``/{prefix}/{user}``；文件夹内：``/{prefix}/{user}/folder/{parent}``。"""
        prefix = get_settings().storage_path_prefix.strip("/")
        base = f"/{prefix}/{user_id}" if prefix else f"/{user_id}"
        if parent_id is None:
            return base
        return f"{base}/folder/{parent_id}"

    def stored_name(self, file_name: str, mime_type: str) -> str:
        ext = PurePosixPath(file_name).suffix.lower()
        if not ext:
            ext = mimetypes.guess_extension(mime_type) or ""
        return f"{uuid.uuid4().hex}{ext}"

    def upload(
        self,
        db: Session,
        *,
        user_id: str,
        file_name: Optional[str],
        content: Optional[bytes],
        mime_type: Optional[str],
        parent_id: Optional[str] = None,
        backend: Optional[StorageBackend] = None,
    ) -> FileNode:
        require_user(user_id)

        if content is None:
            raise ValidationError("未提供上传文件")
        name = PurePosixPath((file_name or "").replace("\\", "/")).name.strip()
        if not name:
            raise ValidationError("文件名不能为空")

        mime = (mime_type or "").split(";")[0].strip().lower()
        if not is_allowed_mime(mime):
            raise UnsupportedTypeError()

        if parent_id is not None:
            file_service.get_folder(db, id=parent_id, user_id=user_id)

        backend = backend or get_storage_backend()
        stored = backend.upload(
            content=content,
            folder=self.destination_folder(user_id=user_id, parent_id=parent_id),
            file_name=self.stored_name(name, mime),
            mime_type=mime,
        )

        try:
            node = file_node_crud.create(
                db,
                {
                    "name": name,
                    "path": stored.path,
                    "size": len(content),
                    "type": mime,
                    "file_url": stored.url,
                    "thumbnail_url": stored.thumbnail_url,
                    "user_id": user_id,
                    "parent_id": parent_id,
                    "is_folder": False,
                },
            )
        except SQLAlchemyError:
            db.rollback()
            logger.error("Recording upload failed, removing stored object %s", stored.path)
            try:
                backend.delete(path=stored.path)
            except Exception as cleanup_exc:
                logger.warning("Cleanup of %s failed: %s", stored.path, cleanup_exc)
            raise

        logger.info("File uploaded: id=%s user=%s parent=%s size=%s", node.id, user_id, parent_id, node.size)
        return node


upload_service = UploadService()
