"""文件夹路由：新建、详情与面包屑路径。"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.packages.drive.api.v1.schemas.files import (
    BreadcrumbItem,
    BreadcrumbResponse,
    FileNodeOut,
    FileNodeResponse,
    FolderCreateBody,
)
from app.packages.drive.core.dependencies import get_current_user_id, get_db
from app.packages.drive.core.responses import create_response
from app.packages.drive.services.file_service import file_service

router = APIRouter(prefix="/folders", tags=["folders"])


@router.post("", response_model=FileNodeResponse)
def create_folder(
    body: FolderCreateBody,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    folder = file_service.create_folder(db, user_id=user_id, name=body.name, parent_id=body.parentId or None)
    return create_response("文件夹创建成功", FileNodeOut.from_node(folder))


@router.get("/{folder_id}", response_model=FileNodeResponse)
def get_folder(folder_id: str, db: Session = Depends(get_db), user_id: str = Depends(get_current_user_id)):
    folder = file_service.get_folder(db, id=folder_id, user_id=user_id)
    return create_response("获取文件夹详情成功", FileNodeOut.from_node(folder))


@router.get("/{folder_id}/path", response_model=BreadcrumbResponse)
def get_folder_path(folder_id: str, db: Session = Depends(get_db), user_id: str = Depends(get_current_user_id)):
    """从根到该文件夹的面包屑；未知 id 返回空列表。"""
    chain = file_service.resolve_path(db, id=folder_id, user_id=user_id)
    return create_response("获取路径成功", [BreadcrumbItem(**item) for item in chain])
