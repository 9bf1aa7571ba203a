"""文件与文件夹接口的请求/响应模型（字段统一使用 camelCase）。"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from app.packages.drive.api.v1.schemas.common import ResponseEnvelope
from app.packages.drive.core.timezone import to_local
from app.packages.drive.models.file_node import FileNode


class FileNodeOut(BaseModel):
    id: str
    name: str
    path: str
    size: int
    type: str
    fileUrl: Optional[str] = None
    thumbnailUrl: Optional[str] = None
    userId: str
    parentId: Optional[str] = None
    isFolder: bool
    isStarred: bool
    isTrash: bool
    version: int
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None

    @classmethod
    def from_node(cls, node: FileNode) -> "FileNodeOut":
        return cls(
            id=node.id,
            name=node.name,
            path=node.path,
            size=node.size or 0,
            type=node.type,
            fileUrl=node.file_url,
            thumbnailUrl=node.thumbnail_url,
            userId=node.user_id,
            parentId=node.parent_id,
            isFolder=bool(node.is_folder),
            isStarred=bool(node.is_starred),
            isTrash=bool(node.is_trash),
            version=node.version,
            createdAt=to_local(node.created_at),
            updatedAt=to_local(node.updated_at),
        )

    @classmethod
    def from_nodes(cls, nodes: List[FileNode]) -> List["FileNodeOut"]:
        return [cls.from_node(n) for n in nodes]


class BreadcrumbItem(BaseModel):
    id: str
    name: str


class FolderCreateBody(BaseModel):
    # 空白名称交给服务层校验，以统一的 400 返回
    name: Optional[str] = None
    parentId: Optional[str] = None


class NodeUpdateBody(BaseModel):
    name: Optional[str] = None
    parentId: Optional[str] = None
    moveToRoot: bool = False
    version: Optional[int] = Field(default=None, ge=1)


class BulkIdsBody(BaseModel):
    ids: List[str] = Field(..., min_length=1, max_length=500)


class BulkItemResult(BaseModel):
    id: str
    status: str
    message: str


class StorageErrorItem(BaseModel):
    id: str
    path: str
    message: str


class DeleteResult(BaseModel):
    deletedIds: List[str]
    storageErrors: List[StorageErrorItem] = Field(default_factory=list)


class BulkResult(BaseModel):
    results: List[BulkItemResult]
    successCount: int
    failureCount: int
    storageErrors: List[StorageErrorItem] = Field(default_factory=list)


FileNodeResponse = ResponseEnvelope[FileNodeOut]
FileNodeListResponse = ResponseEnvelope[List[FileNodeOut]]
BreadcrumbResponse = ResponseEnvelope[List[BreadcrumbItem]]
DeleteResponse = ResponseEnvelope[DeleteResult]
BulkResponse = ResponseEnvelope[BulkResult]
