"""缩略图服务：上传图片时同步生成一份等比缩放的缩略图。

- 仅处理位图（image/*，SVG 除外）；PDF 不生成缩略图；
- 默认输出 webp，运行环境的 Pillow 未启用 webp 编码时回退 jpeg；
- 原图超过 ``MAX_ORIG_BYTES`` 或解码失败时返回 ``None``，上传流程照常继续。
"""

from __future__ import annotations

import io
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Optional

from PIL import Image, UnidentifiedImageError, features

from app.packages.drive.core.config import get_settings
from app.packages.drive.core.logger import logger


@dataclass(frozen=True)
class Thumbnail:
    content: bytes
    fmt: str
    mime_type: str


class ThumbnailService:
    DEFAULT_FMT = "webp"
    DEFAULT_QUALITY = 75
    MAX_ORIG_BYTES = 20 * 1024 * 1024
    SKIPPED_MIME_TYPES = frozenset({"image/svg+xml"})

    def supports(self, mime_type: Optional[str]) -> bool:
        mime = (mime_type or "").lower()
        return mime.startswith("image/") and mime not in self.SKIPPED_MIME_TYPES

    def render(self, data: bytes, *, mime_type: Optional[str], width: Optional[int] = None) -> Optional[Thumbnail]:
        if not self.supports(mime_type):
            return None
        if len(data) > self.MAX_ORIG_BYTES:
            logger.info("Skip thumbnail: original image too large (%s bytes)", len(data))
            return None

        width = int(width or get_settings().thumbnail_width)
        fmt = self._effective_format(self.DEFAULT_FMT)
        try:
            content = self._make_thumbnail(data, width=width, fmt=fmt, quality=self.DEFAULT_QUALITY)
        except (UnidentifiedImageError, OSError, ValueError) as exc:
            logger.warning("Thumbnail generation failed: %s", exc)
            return None
        return Thumbnail(content=content, fmt=fmt, mime_type=self._mime_for(fmt))

    def thumbnail_name(self, file_name: str, *, width: Optional[int] = None, fmt: Optional[str] = None) -> str:
        """``a1b2.png`` -> ``a1b2__w256.webp``。"""
        width = int(width or get_settings().thumbnail_width)
        fmt = fmt or self._effective_format(self.DEFAULT_FMT)
        return f"{PurePosixPath(file_name).stem}__w{width}.{fmt}"

    # --------------------- helpers ---------------------
    def _make_thumbnail(self, data: bytes, *, width: int, fmt: str, quality: int) -> bytes:
        img = Image.open(io.BytesIO(data))
        img = img.convert("RGB") if img.mode not in ("RGB", "RGBA") else img
        if fmt in ("jpg", "jpeg") and img.mode == "RGBA":
            img = img.convert("RGB")

        # 最长边等比缩放，不放大
        img.thumbnail((width, width), Image.LANCZOS)

        out = io.BytesIO()
        if fmt == "png":
            img.save(out, format="PNG", optimize=True)
        elif fmt in ("jpg", "jpeg"):
            img.save(out, format="JPEG", quality=quality, optimize=True)
        else:
            img.save(out, format="WEBP", quality=quality, method=6)
        return out.getvalue()

    def _mime_for(self, fmt: str) -> str:
        m = fmt.lower()
        if m == "png":
            return "image/png"
        if m in ("jpg", "jpeg"):
            return "image/jpeg"
        return "image/webp"

    def _effective_format(self, requested: str) -> str:
        req = (requested or self.DEFAULT_FMT).lower()
        if req != "webp":
            return req
        return "webp" if features.check("webp") else "jpeg"


thumbnail_service = ThumbnailService()
