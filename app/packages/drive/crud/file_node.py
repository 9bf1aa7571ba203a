"""FileNode CRUD：``files`` 表的全部查询模式，所有面向调用方的查询都按 ``user_id`` 过滤。"""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

from sqlalchemy import delete, func, not_, update
from sqlalchemy.orm import InstrumentedAttribute, Query, Session

from app.packages.drive.crud.base import CRUDBase
from app.packages.drive.models.base import utcnow
from app.packages.drive.models.file_node import FileNode

_LIKE_ESCAPE = "\\"


def _escape_like(raw: str) -> str:
    return (
        raw.replace(_LIKE_ESCAPE, _LIKE_ESCAPE * 2)
        .replace("%", _LIKE_ESCAPE + "%")
        .replace("_", _LIKE_ESCAPE + "_")
    )


class CRUDFileNode(CRUDBase[FileNode]):
    def owned(self, db: Session, user_id: str) -> Query:
        return self.query(db).filter(FileNode.user_id == user_id)

    def get_for_user(self, db: Session, *, id: str, user_id: str) -> Optional[FileNode]:
        return self.owned(db, user_id).filter(FileNode.id == id).first()

    def get_folder_for_user(self, db: Session, *, id: str, user_id: str) -> Optional[FileNode]:
        return (
            self.owned(db, user_id)
            .filter(FileNode.id == id)
            .filter(FileNode.is_folder.is_(True))
            .first()
        )

    # ----------------------------
    # 列表
    # ----------------------------
    def list_children(
        self,
        db: Session,
        *,
        user_id: str,
        parent_id: Optional[str],
        include_trashed: bool = False,
    ) -> List[FileNode]:
        q = self.owned(db, user_id)
        if parent_id is None:
            q = q.filter(FileNode.parent_id.is_(None))
        else:
            q = q.filter(FileNode.parent_id == parent_id)
        if not include_trashed:
            q = q.filter(FileNode.is_trash.is_(False))
        return q.order_by(FileNode.is_folder.desc(), func.lower(FileNode.name), FileNode.id).all()

    def list_starred(self, db: Session, *, user_id: str) -> List[FileNode]:
        return (
            self.owned(db, user_id)
            .filter(FileNode.is_starred.is_(True))
            .filter(FileNode.is_trash.is_(False))
            .order_by(FileNode.updated_at.desc(), FileNode.id)
            .all()
        )

    def list_trashed(self, db: Session, *, user_id: str) -> List[FileNode]:
        return (
            self.owned(db, user_id)
            .filter(FileNode.is_trash.is_(True))
            .order_by(FileNode.updated_at.desc(), FileNode.id)
            .all()
        )

    def list_recent(self, db: Session, *, user_id: str, limit: int) -> List[FileNode]:
        return (
            self.owned(db, user_id)
            .filter(FileNode.is_trash.is_(False))
            .order_by(FileNode.created_at.desc(), FileNode.id)
            .limit(limit)
            .all()
        )

    def search_by_name(self, db: Session, *, user_id: str, term: str, limit: int) -> List[FileNode]:
        pattern = f"%{_escape_like(term)}%"
        return (
            self.owned(db, user_id)
            .filter(FileNode.is_trash.is_(False))
            .filter(FileNode.name.ilike(pattern, escape=_LIKE_ESCAPE))
            .order_by(FileNode.updated_at.desc(), FileNode.id)
            .limit(limit)
            .all()
        )

    # ----------------------------
    # 树遍历辅助
    # ----------------------------
    def child_ids(self, db: Session, *, parent_ids: Sequence[str], user_id: str) -> List[str]:
        if not parent_ids:
            return []
        rows = (
            db.query(FileNode.id)
            .filter(FileNode.user_id == user_id)
            .filter(FileNode.parent_id.in_(list(parent_ids)))
            .all()
        )
        return [row[0] for row in rows]

    def parent_link(self, db: Session, *, id: str, user_id: str) -> Optional[tuple[str, str, Optional[str]]]:
        """只取 (id, name, parent_id)，供面包屑逐级上溯。"""
        row = (
            db.query(FileNode.id, FileNode.name, FileNode.parent_id)
            .filter(FileNode.user_id == user_id)
            .filter(FileNode.id == id)
            .first()
        )
        return tuple(row) if row else None

    def storage_paths(self, db: Session, *, ids: Iterable[str], user_id: str) -> List[tuple[str, str, Optional[str]]]:
        """返回待删除文件的 (id, path, thumbnail_url)，目录不占用对象存储。"""
        id_list = list(ids)
        if not id_list:
            return []
        rows = (
            db.query(FileNode.id, FileNode.path, FileNode.thumbnail_url)
            .filter(FileNode.user_id == user_id)
            .filter(FileNode.id.in_(id_list))
            .filter(FileNode.is_folder.is_(False))
            .all()
        )
        return [tuple(row) for row in rows]

    # ----------------------------
    # 原子更新 / 批量写入
    # ----------------------------
    def flip_flag(self, db: Session, *, id: str, user_id: str, column: InstrumentedAttribute) -> int:
        """由数据库自身计算 ``col = NOT col``，单条语句完成翻转，避免读改写竞争。"""
        stmt = (
            update(FileNode)
            .where(FileNode.id == id, FileNode.user_id == user_id)
            .values({column.key: not_(column), "version": FileNode.version + 1, "updated_at": utcnow()})
            .execution_options(synchronize_session=False)
        )
        return db.execute(stmt).rowcount

    def set_flag_many(
        self,
        db: Session,
        *,
        ids: Sequence[str],
        user_id: str,
        column: InstrumentedAttribute,
        value: bool,
    ) -> int:
        if not ids:
            return 0
        stmt = (
            update(FileNode)
            .where(FileNode.user_id == user_id, FileNode.id.in_(list(ids)))
            .values({column.key: value, "version": FileNode.version + 1, "updated_at": utcnow()})
            .execution_options(synchronize_session=False)
        )
        return db.execute(stmt).rowcount

    def delete_many(self, db: Session, *, ids: Sequence[str], user_id: str) -> int:
        if not ids:
            return 0
        stmt = (
            delete(FileNode)
            .where(FileNode.user_id == user_id, FileNode.id.in_(list(ids)))
            .execution_options(synchronize_session=False)
        )
        return db.execute(stmt).rowcount


file_node_crud = CRUDFileNode(FileNode)
