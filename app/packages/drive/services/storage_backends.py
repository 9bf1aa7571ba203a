"""存储后端抽象与实现：统一封装本地磁盘与 S3 兼容对象存储的写入和删除。

对象路径统一以 ``/`` 开头，例如 ``/droply/user_a/folder/<id>/<hex>.png``；
图片的缩略图放在 ``/.thumbnails`` 下的同构路径中，删除原文件时一并清理。
"""

from __future__ import annotations

import io
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Optional

from fastapi import status

from app.packages.drive.core.config import Settings, get_settings
from app.packages.drive.core.exceptions import AppException, StorageUploadError
from app.packages.drive.core.logger import logger
from app.packages.drive.services.thumbnail_service import thumbnail_service

THUMBNAIL_ROOT = "/.thumbnails"


@dataclass(frozen=True)
class UploadedObject:
    url: str
    path: str
    thumbnail_url: Optional[str] = None


def join_path(folder: str, name: str) -> str:
    folder_norm = "/" + folder.strip("/") if folder.strip("/") else ""
    return f"{folder_norm}/{name}"


def thumbnail_path_for(path: str) -> str:
    p = PurePosixPath(path)
    return join_path(THUMBNAIL_ROOT + str(p.parent).rstrip("/"), thumbnail_service.thumbnail_name(p.name))


class StorageBackend:
    """存储后端接口：子类只需实现 ``_put`` / ``_remove`` / ``url_for``。"""

    def upload(self, *, content: bytes, folder: str, file_name: str, mime_type: Optional[str]) -> UploadedObject:
        path = join_path(folder, file_name)
        try:
            self._put(path, content, mime_type)
        except AppException:
            raise
        except Exception as exc:
            logger.exception("Storage upload failed for %s: %s", path, exc)
            raise StorageUploadError() from exc

        thumbnail_url = None
        thumb = thumbnail_service.render(content, mime_type=mime_type)
        if thumb is not None:
            thumb_path = thumbnail_path_for(path)
            try:
                self._put(thumb_path, thumb.content, thumb.mime_type)
                thumbnail_url = self.url_for(thumb_path)
            except Exception as exc:
                # 缩略图失败不影响原文件
                logger.warning("Thumbnail upload failed for %s: %s", path, exc)

        return UploadedObject(url=self.url_for(path), path=path, thumbnail_url=thumbnail_url)

    def delete(self, *, path: str) -> None:
        """删除对象及其缩略图；对象不存在视为成功。"""
        self._remove(path)
        self._remove(thumbnail_path_for(path))

    def url_for(self, path: str) -> str:
        raise NotImplementedError

    def _put(self, path: str, content: bytes, mime_type: Optional[str]) -> None:
        raise NotImplementedError

    def _remove(self, path: str) -> None:
        raise NotImplementedError


# ------------------------------------------
# 本地文件系统实现
# ------------------------------------------


class LocalBackend(StorageBackend):
    def __init__(self, root: Path | str, *, public_base_url: str, public_mount: str):
        self.root = Path(root).resolve()
        self.public_base_url = public_base_url.rstrip("/")
        self.public_mount = "/" + public_mount.strip("/") if public_mount.strip("/") else ""
        if not self.root.exists():
            try:
                self.root.mkdir(parents=True, exist_ok=True)
            except OSError as exc:  # pragma: no cover - 极端情况下可能失败
                raise AppException(f"无法创建本地根目录: {exc}", status.HTTP_500_INTERNAL_SERVER_ERROR) from exc

    # 统一的安全路径拼接，防止路径遍历
    def _resolve(self, rel: str) -> Path:
        candidate = (self.root / rel.strip().lstrip("/")).resolve()
        try:
            candidate.relative_to(self.root)
        except ValueError as exc:
            raise AppException("非法路径: 越权访问", status.HTTP_400_BAD_REQUEST) from exc
        return candidate

    def url_for(self, path: str) -> str:
        return f"{self.public_base_url}{self.public_mount}/{path.lstrip('/')}"

    def _put(self, path: str, content: bytes, mime_type: Optional[str]) -> None:
        dst = self._resolve(path)
        dst.parent.mkdir(parents=True, exist_ok=True)
        with open(dst, "wb") as f:
            f.write(content)

    def _remove(self, path: str) -> None:
        target = self._resolve(path)
        # 允许幂等：不存在则忽略
        if target.is_file():
            target.unlink()


# ------------------------------------------
# S3 实现（boto3）
# ------------------------------------------


class S3Backend(StorageBackend):
    def __init__(
        self,
        *,
        bucket: str,
        region: Optional[str],
        access_key_id: Optional[str],
        secret_access_key: Optional[str],
        endpoint_url: Optional[str] = None,
        custom_domain: Optional[str] = None,
    ):
        try:
            import boto3  # type: ignore
        except ImportError as exc:
            raise AppException(
                "S3 功能不可用：缺少依赖 boto3，请在后端安装后重试",
                status.HTTP_500_INTERNAL_SERVER_ERROR,
            ) from exc

        self.bucket = bucket
        self.region = region
        self.endpoint_url = endpoint_url.rstrip("/") if endpoint_url else None
        self.custom_domain = custom_domain.strip("/") if custom_domain else None
        self._client = boto3.client(
            "s3",
            region_name=region,
            endpoint_url=endpoint_url,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
        )

    @staticmethod
    def _key(path: str) -> str:
        return path.lstrip("/")

    def url_for(self, path: str) -> str:
        key = self._key(path)
        if self.custom_domain:
            base = self.custom_domain if "://" in self.custom_domain else f"https://{self.custom_domain}"
            return f"{base}/{key}"
        if self.endpoint_url:
            return f"{self.endpoint_url}/{self.bucket}/{key}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"

    def _put(self, path: str, content: bytes, mime_type: Optional[str]) -> None:
        extra = {"ContentType": mime_type} if mime_type else None
        self._client.upload_fileobj(io.BytesIO(content), self.bucket, self._key(path), ExtraArgs=extra)

    def _remove(self, path: str) -> None:
        # delete_object 对不存在的 key 同样返回成功
        self._client.delete_object(Bucket=self.bucket, Key=self._key(path))


def build_backend(settings: Settings) -> StorageBackend:
    t = (settings.storage_type or "").upper()
    if t == "LOCAL":
        return LocalBackend(
            settings.storage_local_directory,
            public_base_url=settings.storage_public_base_url,
            public_mount=settings.storage_public_mount,
        )
    if t == "S3":
        if not settings.s3_bucket:
            raise AppException("S3 配置不完整", status.HTTP_500_INTERNAL_SERVER_ERROR)
        return S3Backend(
            bucket=settings.s3_bucket,
            region=settings.s3_region,
            access_key_id=settings.s3_access_key_id,
            secret_access_key=settings.s3_secret_access_key,
            endpoint_url=settings.s3_endpoint_url,
            custom_domain=settings.s3_custom_domain,
        )
    raise AppException("不支持的存储类型", status.HTTP_500_INTERNAL_SERVER_ERROR)


_backend: Optional[StorageBackend] = None


def get_storage_backend() -> StorageBackend:
    """进程内复用同一个存储后端实例（可作为 FastAPI 依赖注入）。"""
    global _backend
    if _backend is None:
        _backend = build_backend(get_settings())
    return _backend


def reset_storage_backend() -> None:
    global _backend
    _backend = None
