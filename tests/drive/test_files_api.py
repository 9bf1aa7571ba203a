"""文件与文件夹接口集成测试（LOCAL 存储，统一响应结构）。"""

import io

from fastapi.testclient import TestClient
from PIL import Image

from app.packages.drive.core.config import get_settings

PDF_BYTES = b"%PDF-1.4\n1 0 obj\n<<>>\nendobj\n"


def _png_bytes() -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (300, 200), color=(10, 120, 200)).save(buf, format="PNG")
    return buf.getvalue()


def _create_folder(client: TestClient, headers: dict, name: str, parent_id=None) -> dict:
    resp = client.post("/api/v1/folders", json={"name": name, "parentId": parent_id}, headers=headers)
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]


def _upload(client: TestClient, headers: dict, name: str, content: bytes, mime: str, parent_id=None):
    data = {"parentId": parent_id} if parent_id else {}
    return client.post(
        "/api/v1/files/upload",
        files={"file": (name, content, mime)},
        data=data,
        headers=headers,
    )


def test_health(client: TestClient):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"msg": "OK", "data": {"status": "healthy"}, "code": 200}


def test_requests_without_valid_identity_are_unauthorized(client: TestClient, auth_headers):
    resp = client.get("/api/v1/files")
    assert resp.status_code == 401
    assert resp.json()["code"] == 401

    bad = client.get("/api/v1/files", headers={"Authorization": "Bearer not-a-token"})
    assert bad.status_code == 401

    mismatch = client.get("/api/v1/files", params={"userId": "user_b"}, headers=auth_headers("user_a"))
    assert mismatch.status_code == 401

    match = client.get("/api/v1/files", params={"userId": "user_a"}, headers=auth_headers("user_a"))
    assert match.status_code == 200
    assert match.json()["data"] == []


def test_folder_upload_and_listing_flow(client: TestClient, auth_headers):
    headers = auth_headers("user_a")
    docs = _create_folder(client, headers, "Docs")
    assert docs["isFolder"] is True
    assert docs["type"] == "folder"
    assert docs["fileUrl"] is None

    up = _upload(client, headers, "a.pdf", PDF_BYTES, "application/pdf", parent_id=docs["id"])
    assert up.status_code == 200, up.text
    uploaded = up.json()["data"]
    assert uploaded["name"] == "a.pdf"
    assert uploaded["parentId"] == docs["id"]
    assert uploaded["size"] == len(PDF_BYTES)
    assert uploaded["path"].startswith(f"/droply/user_a/folder/{docs['id']}/")
    assert uploaded["fileUrl"].startswith("http://testserver/media/droply/user_a/")

    listing = client.get("/api/v1/files", params={"parentId": docs["id"]}, headers=headers)
    assert listing.status_code == 200
    items = listing.json()["data"]
    assert [(i["name"], i["isFolder"]) for i in items] == [("a.pdf", False)]

    # 本地存储模式下文件可通过挂载路径直接访问
    media = client.get(uploaded["fileUrl"].replace("http://testserver", ""))
    assert media.status_code == 200
    assert media.content == PDF_BYTES

    root = client.get("/api/v1/files", headers=headers).json()["data"]
    assert [i["name"] for i in root] == ["Docs"]

    other = client.get("/api/v1/files", headers=auth_headers("user_b")).json()["data"]
    assert other == []


def test_image_upload_gets_thumbnail(client: TestClient, auth_headers):
    headers = auth_headers("user_a")

    resp = _upload(client, headers, "photo.png", _png_bytes(), "image/png")

    assert resp.status_code == 200, resp.text
    data = resp.json()["data"]
    assert data["type"] == "image/png"
    assert data["thumbnailUrl"]
    thumb = client.get(data["thumbnailUrl"].replace("http://testserver", ""))
    assert thumb.status_code == 200


def test_unsupported_and_oversized_uploads(client: TestClient, auth_headers, monkeypatch):
    headers = auth_headers("user_a")

    text = _upload(client, headers, "notes.txt", b"hello", "text/plain")
    assert text.status_code == 415
    assert text.json()["code"] == 415

    monkeypatch.setattr(get_settings(), "max_upload_bytes", 8)
    big = _upload(client, headers, "big.pdf", PDF_BYTES, "application/pdf")
    assert big.status_code == 413

    missing = client.post("/api/v1/files/upload", headers=headers)
    assert missing.status_code == 400

    assert client.get("/api/v1/files", headers=headers).json()["data"] == []


def test_blank_folder_name_is_rejected(client: TestClient, auth_headers):
    resp = client.post("/api/v1/folders", json={"name": "   "}, headers=auth_headers("user_a"))

    assert resp.status_code == 400
    assert resp.json()["code"] == 400


def test_breadcrumb_and_folder_detail(client: TestClient, auth_headers):
    headers = auth_headers("user_a")
    a = _create_folder(client, headers, "A")
    b = _create_folder(client, headers, "B", a["id"])

    path = client.get(f"/api/v1/folders/{b['id']}/path", headers=headers)
    assert path.status_code == 200
    assert path.json()["data"] == [{"id": a["id"], "name": "A"}, {"id": b["id"], "name": "B"}]

    detail = client.get(f"/api/v1/folders/{b['id']}", headers=headers)
    assert detail.json()["data"]["path"] == "/A/B"

    unknown = client.get("/api/v1/folders/unknown/path", headers=headers)
    assert unknown.json()["data"] == []

    foreign = client.get(f"/api/v1/folders/{b['id']}", headers=auth_headers("user_b"))
    assert foreign.status_code == 404


def test_star_and_trash_are_independent(client: TestClient, auth_headers):
    headers = auth_headers("user_a")
    node = _upload(client, headers, "a.pdf", PDF_BYTES, "application/pdf").json()["data"]

    starred = client.patch(f"/api/v1/files/{node['id']}/star", headers=headers).json()["data"]
    assert starred["isStarred"] is True
    trashed = client.patch(f"/api/v1/files/{node['id']}/trash", headers=headers).json()["data"]
    assert trashed["isStarred"] is True
    assert trashed["isTrash"] is True

    trash = client.get("/api/v1/files/trash", headers=headers).json()["data"]
    assert [i["id"] for i in trash] == [node["id"]]
    assert client.get("/api/v1/files/starred", headers=headers).json()["data"] == []
    assert client.get("/api/v1/files/recent", headers=headers).json()["data"] == []

    restored = client.patch(f"/api/v1/files/{node['id']}/trash", headers=headers).json()["data"]
    assert restored["isTrash"] is False
    assert [i["id"] for i in client.get("/api/v1/files/starred", headers=headers).json()["data"]] == [node["id"]]


def test_trash_cascade_query_parameter(client: TestClient, auth_headers):
    headers = auth_headers("user_a")
    docs = _create_folder(client, headers, "Docs")
    child = _upload(client, headers, "a.pdf", PDF_BYTES, "application/pdf", parent_id=docs["id"]).json()["data"]

    client.patch(f"/api/v1/files/{docs['id']}/trash", params={"cascade": "true"}, headers=headers)

    detail = client.get(f"/api/v1/files/{child['id']}", headers=headers).json()["data"]
    assert detail["isTrash"] is True


def test_search_endpoint(client: TestClient, auth_headers):
    headers = auth_headers("user_a")
    _create_folder(client, headers, "Tax Docs")
    _create_folder(client, headers, "Photos")

    found = client.get("/api/v1/files/search", params={"q": "DOC"}, headers=headers).json()["data"]
    assert [i["name"] for i in found] == ["Tax Docs"]

    empty = client.get("/api/v1/files/search", params={"q": "  "}, headers=headers).json()["data"]
    assert empty == []


def test_rename_move_and_version_conflict(client: TestClient, auth_headers):
    headers = auth_headers("user_a")
    docs = _create_folder(client, headers, "Docs")
    node = _upload(client, headers, "a.pdf", PDF_BYTES, "application/pdf").json()["data"]

    renamed = client.patch(f"/api/v1/files/{node['id']}", json={"name": "b.pdf", "version": node["version"]}, headers=headers)
    assert renamed.status_code == 200
    assert renamed.json()["data"]["name"] == "b.pdf"

    stale = client.patch(f"/api/v1/files/{node['id']}", json={"name": "c.pdf", "version": node["version"]}, headers=headers)
    assert stale.status_code == 409
    assert stale.json()["code"] == 409

    moved = client.patch(f"/api/v1/files/{node['id']}", json={"parentId": docs["id"]}, headers=headers)
    assert moved.json()["data"]["parentId"] == docs["id"]

    to_root = client.patch(f"/api/v1/files/{node['id']}", json={"moveToRoot": True}, headers=headers)
    assert to_root.json()["data"]["parentId"] is None

    cycle = client.patch(f"/api/v1/files/{docs['id']}", json={"parentId": docs["id"]}, headers=headers)
    assert cycle.status_code == 400


def test_permanent_delete_removes_subtree_and_objects(client: TestClient, auth_headers):
    headers = auth_headers("user_a")
    docs = _create_folder(client, headers, "Docs")
    sub = _create_folder(client, headers, "Sub", docs["id"])
    leaf = _upload(client, headers, "leaf.pdf", PDF_BYTES, "application/pdf", parent_id=sub["id"]).json()["data"]
    media_path = leaf["fileUrl"].replace("http://testserver", "")
    assert client.get(media_path).status_code == 200

    resp = client.delete(f"/api/v1/files/{docs['id']}", headers=headers)

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert set(data["deletedIds"]) == {docs["id"], sub["id"], leaf["id"]}
    assert data["storageErrors"] == []
    assert client.get(f"/api/v1/files/{leaf['id']}", headers=headers).status_code == 404
    assert client.get(f"/api/v1/folders/{leaf['id']}/path", headers=headers).json()["data"] == []
    assert client.get(media_path).status_code == 404


def test_bulk_endpoints_and_empty_trash(client: TestClient, auth_headers):
    headers = auth_headers("user_a")
    a = _upload(client, headers, "a.pdf", PDF_BYTES, "application/pdf").json()["data"]
    b = _upload(client, headers, "b.pdf", PDF_BYTES, "application/pdf").json()["data"]

    trash = client.post("/api/v1/files/bulk/trash", json={"ids": [a["id"], b["id"], "missing"]}, headers=headers)
    assert trash.status_code == 200
    body = trash.json()["data"]
    assert body["successCount"] == 2
    assert body["failureCount"] == 1

    restore = client.post("/api/v1/files/bulk/restore", json={"ids": [b["id"]]}, headers=headers)
    assert restore.json()["data"]["successCount"] == 1

    emptied = client.delete("/api/v1/files/trash", headers=headers)
    assert emptied.status_code == 200
    assert [r["id"] for r in emptied.json()["data"]["results"]] == [a["id"]]

    deleted = client.post("/api/v1/files/bulk/delete", json={"ids": [b["id"]]}, headers=headers)
    assert deleted.json()["data"]["successCount"] == 1
    assert client.get("/api/v1/files", headers=headers).json()["data"] == []

    invalid = client.post("/api/v1/files/bulk/delete", json={"ids": []}, headers=headers)
    assert invalid.status_code == 422
