"""目录树服务：面包屑还原、子孙遍历与移动时的成环校验。

所有遍历都只沿 ``parent_id`` 邻接关系进行，不依赖数据库的递归查询或级联；
遍历均带访问集合与深度上限，即使历史数据中存在环也能终止。
"""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy.orm import Session

from app.packages.drive.core.config import get_settings
from app.packages.drive.core.exceptions import ValidationError
from app.packages.drive.core.logger import logger
from app.packages.drive.crud.file_node import file_node_crud


class TreeService:
    def resolve_path(self, db: Session, *, node_id: str, user_id: str) -> List[dict]:
        """从根到目标节点（含自身）的面包屑 ``[{id, name}, ...]``。

        起始节点不存在时返回空列表；上溯途中遇到缺失的父节点（悬空引用）即停止，
        返回已收集的部分链路。
        """
        max_depth = max(get_settings().path_max_depth, 1)
        chain: List[dict] = []
        seen: set[str] = set()
        current: Optional[str] = node_id

        while current is not None:
            if current in seen:
                logger.warning("Cycle detected while resolving path of %s at %s", node_id, current)
                break
            if len(chain) >= max_depth:
                logger.warning("Path of %s exceeds max depth %s, truncated", node_id, max_depth)
                break
            seen.add(current)
            link = file_node_crud.parent_link(db, id=current, user_id=user_id)
            if link is None:
                break
            link_id, link_name, parent_id = link
            chain.insert(0, {"id": link_id, "name": link_name})
            current = parent_id

        return chain

    def collect_descendant_ids(self, db: Session, *, node_id: str, user_id: str) -> List[str]:
        """广度优先收集子孙节点 id（不含自身），按层序返回。"""
        result: List[str] = []
        seen: set[str] = {node_id}
        frontier = [node_id]
        while frontier:
            next_ids = file_node_crud.child_ids(db, parent_ids=frontier, user_id=user_id)
            frontier = [i for i in next_ids if i not in seen]
            seen.update(frontier)
            result.extend(frontier)
        return result

    def ensure_no_cycle(self, db: Session, *, node_id: str, new_parent_id: Optional[str], user_id: str) -> None:
        """把 ``node_id`` 挂到 ``new_parent_id`` 下之前，确认目标不是它自己或它的子孙。"""
        if new_parent_id is None:
            return
        if new_parent_id == node_id:
            raise ValidationError("不能将文件夹移动到其自身")
        # 沿子孙方向完整遍历，不受面包屑深度上限影响
        if new_parent_id in self.collect_descendant_ids(db, node_id=node_id, user_id=user_id):
            raise ValidationError("不能将文件夹移动到其子目录中")

    def build_folder_path(self, db: Session, *, parent_id: Optional[str], user_id: str, name: str) -> str:
        """目录的反范式化路径：``/A/B/name``。

        以父目录已存储的 ``path`` 为前缀拼接，层级再深也不会截断；父目录缺失时按根目录处理。
        """
        if parent_id is None:
            return f"/{name}"
        parent = file_node_crud.get_folder_for_user(db, id=parent_id, user_id=user_id)
        if parent is None or not parent.path:
            return f"/{name}"
        return f"{parent.path.rstrip('/')}/{name}"


tree_service = TreeService()
