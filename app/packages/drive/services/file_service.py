"""文件树业务服务：列表查询、收藏/回收站切换、重命名移动、永久删除与批量操作。

- 所有方法显式接收 ``user_id``，查询与写入都按所有者隔离；
- 收藏/回收站切换由数据库单条语句完成翻转；
- 重命名与移动经 ORM 提交，依赖 ``version`` 乐观锁发现并发修改；
- 永久删除按子树整体删除，提交后再尽力清理对象存储。
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.packages.drive.core.config import get_settings
from app.packages.drive.core.constants import (
    BULK_STATUS_FAILURE,
    BULK_STATUS_SUCCESS,
    FOLDER_TYPE,
    RECENT_LIMIT,
    SEARCH_LIMIT,
)
from app.packages.drive.core.exceptions import (
    AppException,
    ConflictError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from app.packages.drive.core.logger import logger
from app.packages.drive.crud.file_node import file_node_crud
from app.packages.drive.models.file_node import FileNode
from app.packages.drive.services.storage_backends import StorageBackend, get_storage_backend
from app.packages.drive.services.tree_service import tree_service


def require_user(user_id: Optional[str]) -> str:
    if not user_id or not str(user_id).strip():
        raise UnauthorizedError()
    return str(user_id)


def clean_node_name(raw: Optional[str]) -> str:
    name = (raw or "").strip()
    if not name:
        raise ValidationError("名称不能为空")
    if "/" in name:
        raise ValidationError("名称不能包含 /")
    if len(name) > 255:
        raise ValidationError("名称长度不能超过 255 个字符")
    return name


class FileService:
    # ----------------------------
    # 查询
    # ----------------------------
    def get_node(self, db: Session, *, id: str, user_id: str) -> FileNode:
        require_user(user_id)
        node = file_node_crud.get_for_user(db, id=id, user_id=user_id)
        if node is None:
            raise NotFoundError()
        return node

    def get_folder(self, db: Session, *, id: str, user_id: str) -> FileNode:
        require_user(user_id)
        folder = file_node_crud.get_folder_for_user(db, id=id, user_id=user_id)
        if folder is None:
            raise NotFoundError("文件夹不存在")
        return folder

    def list_children(self, db: Session, *, user_id: str, parent_id: Optional[str] = None) -> List[FileNode]:
        require_user(user_id)
        if parent_id is not None:
            self.get_folder(db, id=parent_id, user_id=user_id)
        return file_node_crud.list_children(db, user_id=user_id, parent_id=parent_id)

    def list_starred(self, db: Session, *, user_id: str) -> List[FileNode]:
        return file_node_crud.list_starred(db, user_id=require_user(user_id))

    def list_trashed(self, db: Session, *, user_id: str) -> List[FileNode]:
        return file_node_crud.list_trashed(db, user_id=require_user(user_id))

    def list_recent(self, db: Session, *, user_id: str) -> List[FileNode]:
        return file_node_crud.list_recent(db, user_id=require_user(user_id), limit=RECENT_LIMIT)

    def search(self, db: Session, *, user_id: str, query: Optional[str]) -> List[FileNode]:
        require_user(user_id)
        term = (query or "").strip()
        if not term:
            return []
        return file_node_crud.search_by_name(db, user_id=user_id, term=term, limit=SEARCH_LIMIT)

    def resolve_path(self, db: Session, *, id: str, user_id: str) -> List[dict]:
        return tree_service.resolve_path(db, node_id=id, user_id=require_user(user_id))

    # ----------------------------
    # 新建
    # ----------------------------
    def create_folder(
        self,
        db: Session,
        *,
        user_id: str,
        name: Optional[str],
        parent_id: Optional[str] = None,
    ) -> FileNode:
        require_user(user_id)
        folder_name = clean_node_name(name)
        if parent_id is not None:
            self.get_folder(db, id=parent_id, user_id=user_id)

        folder = file_node_crud.create(
            db,
            {
                "name": folder_name,
                "path": tree_service.build_folder_path(db, parent_id=parent_id, user_id=user_id, name=folder_name),
                "size": 0,
                "type": FOLDER_TYPE,
                "file_url": None,
                "thumbnail_url": None,
                "user_id": user_id,
                "parent_id": parent_id,
                "is_folder": True,
            },
        )
        logger.info("Folder created: id=%s user=%s parent=%s", folder.id, user_id, parent_id)
        return folder

    # ----------------------------
    # 收藏 / 回收站
    # ----------------------------
    def toggle_star(self, db: Session, *, id: str, user_id: str) -> FileNode:
        require_user(user_id)
        if not file_node_crud.flip_flag(db, id=id, user_id=user_id, column=FileNode.is_starred):
            db.rollback()
            raise NotFoundError()
        db.commit()
        node = self.get_node(db, id=id, user_id=user_id)
        logger.info("Star toggled: id=%s user=%s starred=%s", id, user_id, node.is_starred)
        return node

    def toggle_trash(
        self,
        db: Session,
        *,
        id: str,
        user_id: str,
        cascade: Optional[bool] = None,
    ) -> FileNode:
        """翻转 ``is_trash``；``cascade`` 为真时把文件夹的新状态同步到全部子孙。"""
        require_user(user_id)
        if cascade is None:
            cascade = get_settings().trash_cascade

        if not file_node_crud.flip_flag(db, id=id, user_id=user_id, column=FileNode.is_trash):
            db.rollback()
            raise NotFoundError()

        affected = 0
        if cascade:
            affected = self._cascade_trash(db, id=id, user_id=user_id)
        db.commit()

        node = self.get_node(db, id=id, user_id=user_id)
        logger.info(
            "Trash toggled: id=%s user=%s trashed=%s cascade=%s descendants=%s",
            id,
            user_id,
            node.is_trash,
            cascade,
            affected,
        )
        return node

    def _cascade_trash(self, db: Session, *, id: str, user_id: str) -> int:
        row = db.query(FileNode.is_folder, FileNode.is_trash).filter(FileNode.id == id).first()
        if row is None or not row.is_folder:
            return 0
        descendant_ids = tree_service.collect_descendant_ids(db, node_id=id, user_id=user_id)
        return file_node_crud.set_flag_many(
            db, ids=descendant_ids, user_id=user_id, column=FileNode.is_trash, value=bool(row.is_trash)
        )

    def _set_trash(self, db: Session, *, id: str, user_id: str, value: bool, cascade: bool) -> None:
        if not file_node_crud.set_flag_many(db, ids=[id], user_id=user_id, column=FileNode.is_trash, value=value):
            raise NotFoundError()
        if cascade:
            self._cascade_trash(db, id=id, user_id=user_id)

    # ----------------------------
    # 重命名 / 移动
    # ----------------------------
    def rename(self, db: Session, *, id: str, user_id: str, name: Optional[str], version: Optional[int] = None) -> FileNode:
        return self.update_node(db, id=id, user_id=user_id, name=name, version=version)

    def move(
        self,
        db: Session,
        *,
        id: str,
        user_id: str,
        parent_id: Optional[str],
        version: Optional[int] = None,
    ) -> FileNode:
        return self.update_node(
            db,
            id=id,
            user_id=user_id,
            parent_id=parent_id,
            move_to_root=parent_id is None,
            version=version,
        )

    def update_node(
        self,
        db: Session,
        *,
        id: str,
        user_id: str,
        name: Optional[str] = None,
        parent_id: Optional[str] = None,
        move_to_root: bool = False,
        version: Optional[int] = None,
    ) -> FileNode:
        """重命名和/或移动一个节点。

        ``version`` 为调用方最后一次读到的版本号，不一致时直接返回冲突；
        提交时若版本号已被其他请求推进，同样转换为 ``ConflictError``。
        """
        node = self.get_node(db, id=id, user_id=user_id)
        if version is not None and node.version != version:
            raise ConflictError()

        changed = False
        if name is not None:
            new_name = clean_node_name(name)
            if new_name != node.name:
                node.name = new_name
                changed = True

        if move_to_root or parent_id is not None:
            target = None if move_to_root else parent_id
            if target is not None:
                self.get_folder(db, id=target, user_id=user_id)
                tree_service.ensure_no_cycle(db, node_id=node.id, new_parent_id=target, user_id=user_id)
            if target != node.parent_id:
                node.parent_id = target
                changed = True

        if not changed:
            return node

        if node.is_folder:
            self._refresh_folder_paths(db, node=node, user_id=user_id)

        try:
            db.commit()
        except StaleDataError as exc:
            db.rollback()
            logger.warning("Concurrent modification detected on %s: %s", id, exc)
            raise ConflictError() from exc
        db.refresh(node)
        logger.info("Node updated: id=%s user=%s parent=%s version=%s", node.id, user_id, node.parent_id, node.version)
        return node

    def _refresh_folder_paths(self, db: Session, *, node: FileNode, user_id: str) -> None:
        """文件夹改名或移动后，重算自身及子孙文件夹的展示路径。"""
        node.path = tree_service.build_folder_path(db, parent_id=node.parent_id, user_id=user_id, name=node.name)
        descendant_ids = tree_service.collect_descendant_ids(db, node_id=node.id, user_id=user_id)
        if not descendant_ids:
            return

        folders = {
            f.id: f
            for f in file_node_crud.owned(db, user_id)
            .filter(FileNode.id.in_(descendant_ids))
            .filter(FileNode.is_folder.is_(True))
            .all()
        }
        paths = {node.id: node.path}
        # collect_descendant_ids 按层序返回，父目录总先于子目录
        for fid in descendant_ids:
            folder = folders.get(fid)
            if folder is None or folder.parent_id not in paths:
                continue
            folder.path = f"{paths[folder.parent_id]}/{folder.name}"
            paths[fid] = folder.path

    # ----------------------------
    # 永久删除
    # ----------------------------
    def permanent_delete(
        self,
        db: Session,
        *,
        id: str,
        user_id: str,
        backend: Optional[StorageBackend] = None,
    ) -> Dict[str, Any]:
        """在同一事务内删除节点及其整个子树，提交后尽力删除存储对象。"""
        self.get_node(db, id=id, user_id=user_id)

        ids = [id] + tree_service.collect_descendant_ids(db, node_id=id, user_id=user_id)
        objects = file_node_crud.storage_paths(db, ids=ids, user_id=user_id)
        try:
            file_node_crud.delete_many(db, ids=ids, user_id=user_id)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        logger.info("Permanently deleted: id=%s user=%s nodes=%s", id, user_id, len(ids))

        storage_errors = self._remove_objects(objects, backend=backend)
        return {"deletedIds": ids, "storageErrors": storage_errors}

    def _remove_objects(self, objects: Iterable[tuple], *, backend: Optional[StorageBackend]) -> List[dict]:
        errors: List[dict] = []
        targets = [(fid, path) for fid, path, _thumb in objects if path]
        if not targets:
            return errors
        backend = backend or get_storage_backend()
        for fid, path in targets:
            try:
                backend.delete(path=path)
            except Exception as exc:
                logger.warning("Storage delete failed: id=%s path=%s error=%s", fid, path, exc)
                errors.append({"id": fid, "path": path, "message": str(exc) or exc.__class__.__name__})
        return errors

    # ----------------------------
    # 批量
    # ----------------------------
    def bulk_trash(self, db: Session, *, ids: List[str], user_id: str, cascade: Optional[bool] = None) -> Dict[str, Any]:
        require_user(user_id)
        cascade = get_settings().trash_cascade if cascade is None else cascade

        def _trash(item_id: str) -> str:
            self._set_trash(db, id=item_id, user_id=user_id, value=True, cascade=cascade)
            return "已移入回收站"

        return self._run_bulk(db, ids, _trash)

    def bulk_restore(self, db: Session, *, ids: List[str], user_id: str, cascade: Optional[bool] = None) -> Dict[str, Any]:
        require_user(user_id)
        cascade = get_settings().trash_cascade if cascade is None else cascade

        def _restore(item_id: str) -> str:
            self._set_trash(db, id=item_id, user_id=user_id, value=False, cascade=cascade)
            return "已恢复"

        return self._run_bulk(db, ids, _restore)

    def bulk_delete(
        self,
        db: Session,
        *,
        ids: List[str],
        user_id: str,
        backend: Optional[StorageBackend] = None,
    ) -> Dict[str, Any]:
        require_user(user_id)
        removed: set[str] = set()
        storage_errors: List[dict] = []

        def _delete(item_id: str) -> str:
            if item_id in removed:
                return "已随上级文件夹删除"
            outcome = self.permanent_delete(db, id=item_id, user_id=user_id, backend=backend)
            removed.update(outcome["deletedIds"])
            storage_errors.extend(outcome["storageErrors"])
            return "已永久删除"

        result = self._run_bulk(db, ids, _delete)
        result["storageErrors"] = storage_errors
        return result

    def empty_trash(self, db: Session, *, user_id: str, backend: Optional[StorageBackend] = None) -> Dict[str, Any]:
        ids = [node.id for node in self.list_trashed(db, user_id=user_id)]
        return self.bulk_delete(db, ids=ids, user_id=user_id, backend=backend)

    def _run_bulk(self, db: Session, ids: Iterable[str], action: Callable[[str], str]) -> Dict[str, Any]:
        """逐项独立事务执行，单项失败只记录结果，不中断其余项。"""
        results: List[dict] = []
        for item_id in dict.fromkeys(ids):
            try:
                message = action(item_id)
                db.commit()
            except AppException as exc:
                db.rollback()
                results.append({"id": item_id, "status": BULK_STATUS_FAILURE, "message": exc.msg})
                continue
            except SQLAlchemyError as exc:
                db.rollback()
                logger.exception("Bulk item failed: id=%s error=%s", item_id, exc)
                results.append({"id": item_id, "status": BULK_STATUS_FAILURE, "message": "数据库操作失败"})
                continue
            results.append({"id": item_id, "status": BULK_STATUS_SUCCESS, "message": message})

        success = sum(1 for r in results if r["status"] == BULK_STATUS_SUCCESS)
        return {"results": results, "successCount": success, "failureCount": len(results) - success}


file_service = FileService()
