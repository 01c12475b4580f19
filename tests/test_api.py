import base64

import httpx
import pytest

from kataru.api.deps import get_orchestrator, get_storage
from kataru.main import app

from conftest import CDN_HOST, DID_HOST

PNG_DATA_URL = "data:image/png;base64," + base64.b64encode(b"\x89PNG\r\n\x1a\nfake").decode()


@pytest.fixture
async def client(orchestrator, storage):
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_storage] = lambda: storage
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c
    app.dependency_overrides.clear()


async def test_health(client):
    resp = await client.get("/health")

    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


async def test_upload_then_lipsync_round_trip(client, fake):
    fake.did_status = [(200, {"status": "done", "result_url": f"https://{CDN_HOST}/v.mp4"})]

    avatar = await client.post("/api/uploads", json={"bucket": "avatars", "data_url": PNG_DATA_URL})
    product = await client.post("/api/uploads", json={"bucket": "products", "data_url": PNG_DATA_URL})
    assert avatar.status_code == 201
    assert avatar.json()["url"].startswith("http://testserver/media/kataru-avatars/")

    resp = await client.post(
        "/api/jobs/lipsync",
        json={
            "avatar_image": avatar.json()["url"],
            "product_image": product.json()["key"],
            "script_text": "こんにちは",
        },
    )
    assert resp.status_code == 202
    assert resp.json()["status"] == "processing"

    job_id = resp.json()["job_id"]
    status = await client.get(f"/api/jobs/{job_id}")
    assert status.status_code == 200
    body = status.json()
    assert body["status"] == "done"
    assert body["kind"] == "lipsync"
    assert body["result_url"] == f"http://testserver/media/kataru-videos/{job_id}.mp4"
    assert body["error"] is None


async def test_scene_job_blank_description_is_bad_request(client, fake):
    resp = await client.post(
        "/api/jobs/scene-generation",
        json={"product_image": "bottle.png", "product_description": "   "},
    )

    assert resp.status_code == 400
    assert resp.json()["detail"]["code"] == "invalid_input"
    assert fake.requests == []


async def test_rejected_submit_returns_job_id(client, fake):
    fake.xai_submit = [(422, {"message": "nope"})]

    resp = await client.post(
        "/api/jobs/scene-generation",
        json={"product_image": "bottle.png", "product_description": "香水"},
    )

    assert resp.status_code == 502
    detail = resp.json()["detail"]
    assert detail["code"] == "provider_rejected"
    status = await client.get(f"/api/jobs/{detail['details']['job_id']}")
    assert status.json()["status"] == "error"
    assert status.json()["error"]["message"] == "nope"


async def test_unreachable_submit_is_service_unavailable(client, fake):
    fake.unreachable_hosts.add(DID_HOST)

    resp = await client.post(
        "/api/jobs/lipsync",
        json={"avatar_image": "a.png", "product_image": "b.png", "script_text": "hi"},
    )

    assert resp.status_code == 503
    assert resp.json()["detail"]["code"] == "provider_unreachable"


async def test_unknown_job_is_not_found(client):
    resp = await client.get("/api/jobs/does-not-exist")

    assert resp.status_code == 404
    assert resp.json()["detail"] == {"code": "not_found", "message": "Job not found.", "details": {"job_id": "does-not-exist"}}


async def test_upload_rejects_unknown_bucket_and_bad_data(client):
    bad_bucket = await client.post("/api/uploads", json={"bucket": "videos", "data_url": PNG_DATA_URL})
    bad_type = await client.post(
        "/api/uploads", json={"bucket": "avatars", "data_url": "data:text/plain;base64,aGk="}
    )

    assert bad_bucket.status_code == 400
    assert bad_type.status_code == 400


async def test_voices(client, fake):
    fake.did_voices = (200, {"voices": [{"id": "ja-JP-KeitaNeural", "language": "ja-JP"}]})

    resp = await client.get("/api/voices", params={"locale": "ja"})

    assert resp.status_code == 200
    assert resp.json() == {"voices": [{"id": "ja-JP-KeitaNeural", "language": "ja-JP"}]}


async def test_cleanup_endpoint(client):
    resp = await client.post("/api/maintenance/cleanup", json={"days": 7})

    assert resp.status_code == 200
    assert resp.json() == {"removed": 0, "objects_removed": 0}
