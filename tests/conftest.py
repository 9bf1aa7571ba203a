"""测试夹具：为 pytest 提供数据库、存储目录与客户端的共享配置。"""

import os
import shutil
import tempfile
from typing import Callable, Generator, Optional

# 必须在导入应用之前写入环境变量：配置与数据库引擎在导入时即被初始化
TEST_ROOT = tempfile.mkdtemp(prefix="droply_tests_")
TEST_DB_PATH = os.path.join(TEST_ROOT, "test.db")
TEST_DATABASE_URL = f"sqlite:///{TEST_DB_PATH}"

os.environ["APP_ACTIVE_PACKAGE"] = "drive"
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["STORAGE_TYPE"] = "LOCAL"
os.environ["STORAGE_LOCAL_ROOT"] = os.path.join(TEST_ROOT, "storage")
os.environ["STORAGE_PUBLIC_BASE_URL"] = "http://testserver"
os.environ["LOG_DIR"] = os.path.join(TEST_ROOT, "logs")
os.environ["JWT_SECRET_KEY"] = "droply-test-secret"
os.environ["TRASH_CASCADE"] = "false"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine, delete  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402

from app.main import app  # noqa: E402
from app.packages.drive.core.dependencies import get_db  # noqa: E402
from app.packages.drive.core.exceptions import StorageUploadError  # noqa: E402
from app.packages.drive.core.security import create_access_token  # noqa: E402
from app.packages.drive.crud.file_node import file_node_crud  # noqa: E402
from app.packages.drive.db import session as db_session  # noqa: E402
from app.packages.drive.db.init_db import init_db  # noqa: E402
from app.packages.drive.models.base import Base  # noqa: E402
from app.packages.drive.models.file_node import FileNode  # noqa: E402
from app.packages.drive.services.storage_backends import (  # noqa: E402
    StorageBackend,
    UploadedObject,
    join_path,
    reset_storage_backend,
)


@pytest.fixture(scope="session", autouse=True)
def setup_test_database() -> Generator[None, None, None]:
    """创建隔离的 SQLite 测试数据库，并在会话结束后清理。"""
    engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    db_session.engine = engine
    db_session.SessionLocal = TestingSessionLocal

    Base.metadata.create_all(bind=engine)
    init_db()
    yield

    engine.dispose()
    shutil.rmtree(TEST_ROOT, ignore_errors=True)


@pytest.fixture(autouse=True)
def clean_tables() -> Generator[None, None, None]:
    """每个用例结束后清空 ``files`` 表，保证用例之间互不影响。"""
    yield
    with db_session.SessionLocal() as session:
        session.execute(delete(FileNode))
        session.commit()
    reset_storage_backend()


@pytest.fixture()
def db_session_fixture() -> Generator[Session, None, None]:
    """提供给测试用例使用的数据库会话。"""
    session = db_session.SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(db_session_fixture):
    """构建 FastAPI TestClient，并注入测试专用的数据库依赖。"""
    def override_get_db() -> Generator[Session, None, None]:
        session = db_session.SessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture()
def auth_headers() -> Callable[[str], dict[str, str]]:
    """按用户标识签发令牌并生成认证头。"""

    def _headers(user_id: str) -> dict[str, str]:
        token = create_access_token({"sub": user_id})
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture()
def make_file(db_session_fixture: Session) -> Callable[..., FileNode]:
    """直接写入一条文件节点记录，绕过存储上传。"""

    def _make(
        user_id: str,
        name: str,
        *,
        parent_id: Optional[str] = None,
        mime_type: str = "application/pdf",
        path: Optional[str] = None,
        is_trash: bool = False,
        is_starred: bool = False,
    ) -> FileNode:
        return file_node_crud.create(
            db_session_fixture,
            {
                "name": name,
                "path": path if path is not None else f"/droply/{user_id}/{name}",
                "size": 3,
                "type": mime_type,
                "file_url": f"http://testserver/media/droply/{user_id}/{name}",
                "user_id": user_id,
                "parent_id": parent_id,
                "is_folder": False,
                "is_trash": is_trash,
                "is_starred": is_starred,
            },
        )

    return _make


class FakeBackend(StorageBackend):
    """内存存储后端：记录每一次写入与删除，可配置失败。"""

    def __init__(self, *, fail_upload: bool = False, fail_delete: bool = False) -> None:
        self.fail_upload = fail_upload
        self.fail_delete = fail_delete
        self.uploads: list[dict] = []
        self.deleted: list[str] = []

    def upload(self, *, content: bytes, folder: str, file_name: str, mime_type: Optional[str]) -> UploadedObject:
        self.uploads.append({"folder": folder, "file_name": file_name, "mime_type": mime_type, "size": len(content)})
        if self.fail_upload:
            raise StorageUploadError()
        path = join_path(folder, file_name)
        return UploadedObject(url=f"https://cdn.example.com{path}", path=path, thumbnail_url=None)

    def delete(self, *, path: str) -> None:
        if self.fail_delete:
            raise OSError(f"cannot delete {path}")
        self.deleted.append(path)


@pytest.fixture()
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture()
def backend_factory() -> Callable[..., FakeBackend]:
    return FakeBackend
