"""业务包注册表：主应用通过 ``APP_ACTIVE_PACKAGE`` 选择要装配的业务包。"""

from __future__ import annotations

import os
from typing import Dict

from . import drive
from .types import AppPackage

DEFAULT_PACKAGE = drive.package.name

PACKAGE_REGISTRY: Dict[str, AppPackage] = {pkg.name: pkg for pkg in (drive.package,)}


def get_active_package() -> AppPackage:
    name = os.getenv("APP_ACTIVE_PACKAGE") or DEFAULT_PACKAGE
    package = PACKAGE_REGISTRY.get(name)
    if package is None:
        raise RuntimeError(f"未找到名为 '{name}' 的业务包，可用选项：{', '.join(PACKAGE_REGISTRY)}")
    return package


__all__ = ["drive", "PACKAGE_REGISTRY", "get_active_package"]
