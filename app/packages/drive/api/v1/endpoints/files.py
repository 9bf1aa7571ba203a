"""文件与文件夹节点路由：列表、搜索、上传、收藏、回收站、重命名移动与删除。

固定路径（``/files/starred`` 等）必须声明在 ``/files/{file_id}`` 之前。
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.orm import Session

from app.packages.drive.api.v1.schemas.files import (
    BulkIdsBody,
    BulkResponse,
    DeleteResponse,
    FileNodeListResponse,
    FileNodeOut,
    FileNodeResponse,
    NodeUpdateBody,
)
from app.packages.drive.core.config import get_settings
from app.packages.drive.core.constants import HTTP_STATUS_PAYLOAD_TOO_LARGE
from app.packages.drive.core.dependencies import get_current_user_id, get_db
from app.packages.drive.core.exceptions import AppException
from app.packages.drive.core.responses import create_response
from app.packages.drive.services.file_service import file_service
from app.packages.drive.services.storage_backends import StorageBackend, get_storage_backend
from app.packages.drive.services.upload_service import upload_service

router = APIRouter(tags=["files"])


@router.get("/files", response_model=FileNodeListResponse)
def list_files(
    parent_id: Optional[str] = Query(None, alias="parentId"),
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    nodes = file_service.list_children(db, user_id=user_id, parent_id=parent_id or None)
    return create_response("获取文件列表成功", FileNodeOut.from_nodes(nodes))


@router.get("/files/starred", response_model=FileNodeListResponse)
def list_starred(db: Session = Depends(get_db), user_id: str = Depends(get_current_user_id)):
    return create_response("获取收藏列表成功", FileNodeOut.from_nodes(file_service.list_starred(db, user_id=user_id)))


@router.get("/files/trash", response_model=FileNodeListResponse)
def list_trash(db: Session = Depends(get_db), user_id: str = Depends(get_current_user_id)):
    return create_response("获取回收站列表成功", FileNodeOut.from_nodes(file_service.list_trashed(db, user_id=user_id)))


@router.get("/files/recent", response_model=FileNodeListResponse)
def list_recent(db: Session = Depends(get_db), user_id: str = Depends(get_current_user_id)):
    return create_response("获取最近文件成功", FileNodeOut.from_nodes(file_service.list_recent(db, user_id=user_id)))


@router.get("/files/search", response_model=FileNodeListResponse)
def search_files(
    q: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    nodes = file_service.search(db, user_id=user_id, query=q)
    return create_response("搜索成功", FileNodeOut.from_nodes(nodes))


@router.post("/files/upload", response_model=FileNodeResponse)
async def upload_file(
    file: Optional[UploadFile] = File(None),
    parent_id: Optional[str] = Form(None, alias="parentId"),
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    backend: StorageBackend = Depends(get_storage_backend),
):
    content: Optional[bytes] = None
    file_name: Optional[str] = None
    mime_type: Optional[str] = None
    if file is not None:
        max_bytes = get_settings().max_upload_bytes
        # 多读一个字节即可判断是否超限
        content = await file.read(max_bytes + 1)
        if len(content) > max_bytes:
            raise AppException(f"文件大小不能超过 {max_bytes} 字节", HTTP_STATUS_PAYLOAD_TOO_LARGE)
        file_name = file.filename
        mime_type = file.content_type

    node = upload_service.upload(
        db,
        user_id=user_id,
        file_name=file_name,
        content=content,
        mime_type=mime_type,
        parent_id=parent_id or None,
        backend=backend,
    )
    return create_response("文件上传成功", FileNodeOut.from_node(node))


@router.post("/files/bulk/delete", response_model=BulkResponse)
def bulk_delete(
    body: BulkIdsBody,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    backend: StorageBackend = Depends(get_storage_backend),
):
    result = file_service.bulk_delete(db, ids=body.ids, user_id=user_id, backend=backend)
    return create_response("批量删除完成", result)


@router.post("/files/bulk/restore", response_model=BulkResponse)
def bulk_restore(
    body: BulkIdsBody,
    cascade: Optional[bool] = Query(None),
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    result = file_service.bulk_restore(db, ids=body.ids, user_id=user_id, cascade=cascade)
    return create_response("批量恢复完成", result)


@router.post("/files/bulk/trash", response_model=BulkResponse)
def bulk_trash(
    body: BulkIdsBody,
    cascade: Optional[bool] = Query(None),
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    result = file_service.bulk_trash(db, ids=body.ids, user_id=user_id, cascade=cascade)
    return create_response("批量移入回收站完成", result)


@router.delete("/files/trash", response_model=BulkResponse)
def empty_trash(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    backend: StorageBackend = Depends(get_storage_backend),
):
    result = file_service.empty_trash(db, user_id=user_id, backend=backend)
    return create_response("回收站已清空", result)


@router.get("/files/{file_id}", response_model=FileNodeResponse)
def get_file(file_id: str, db: Session = Depends(get_db), user_id: str = Depends(get_current_user_id)):
    node = file_service.get_node(db, id=file_id, user_id=user_id)
    return create_response("获取文件详情成功", FileNodeOut.from_node(node))


@router.patch("/files/{file_id}/star", response_model=FileNodeResponse)
def toggle_star(file_id: str, db: Session = Depends(get_db), user_id: str = Depends(get_current_user_id)):
    node = file_service.toggle_star(db, id=file_id, user_id=user_id)
    return create_response("已收藏" if node.is_starred else "已取消收藏", FileNodeOut.from_node(node))


@router.patch("/files/{file_id}/trash", response_model=FileNodeResponse)
def toggle_trash(
    file_id: str,
    cascade: Optional[bool] = Query(None),
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    node = file_service.toggle_trash(db, id=file_id, user_id=user_id, cascade=cascade)
    return create_response("已移入回收站" if node.is_trash else "已从回收站恢复", FileNodeOut.from_node(node))


@router.patch("/files/{file_id}", response_model=FileNodeResponse)
def update_file(
    file_id: str,
    body: NodeUpdateBody,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    node = file_service.update_node(
        db,
        id=file_id,
        user_id=user_id,
        name=body.name,
        parent_id=body.parentId,
        move_to_root=body.moveToRoot,
        version=body.version,
    )
    return create_response("更新成功", FileNodeOut.from_node(node))


@router.delete("/files/{file_id}", response_model=DeleteResponse)
def delete_file(
    file_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    backend: StorageBackend = Depends(get_storage_backend),
):
    result = file_service.permanent_delete(db, id=file_id, user_id=user_id, backend=backend)
    return create_response("已永久删除", result)
