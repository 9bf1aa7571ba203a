"""统一的文件/文件夹节点模型（``files`` 表）。

存储规则：
- 文件与文件夹共用一张自引用表，``parent_id`` 为空表示位于根目录；
- 文件夹：``is_folder=True``、``size=0``、``type='folder'``、``file_url`` 为空；
- 文件：``path`` 为对象存储返回的唯一路径，``file_url``/``thumbnail_url`` 为外部引用；
- ``parent_id`` 外键不带级联动作，子树删除由服务层负责；
- ``version`` 为乐观锁版本号，ORM 更新时自动校验并自增。
"""

import uuid
from typing import Optional

from sqlalchemy import BigInteger, Boolean, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import expression

from app.packages.drive.models.base import Base, TimestampMixin


def _new_id() -> str:
    return str(uuid.uuid4())


class FileNode(TimestampMixin, Base):
    __tablename__ = "files"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    # 文件：/droply/<user>/folder/<parent>/<uuid>.<ext>；文件夹：/Docs/Reports
    path: Mapped[str] = mapped_column(String(1024), nullable=False, default="")
    size: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    type: Mapped[str] = mapped_column(String(255), nullable=False)

    file_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    thumbnail_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    parent_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("files.id"), nullable=True, index=True
    )

    is_folder: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=expression.false()
    )
    is_starred: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=expression.false()
    )
    is_trash: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=expression.false()
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("ix_files_user_parent", "user_id", "parent_id"),
        Index("ix_files_user_trash", "user_id", "is_trash"),
    )

    def __repr__(self) -> str:
        kind = "folder" if self.is_folder else "file"
        return f"<FileNode {kind} {self.id} {self.name!r} user={self.user_id}>"
