import json

import pytest

from kataru.services.errors import InvalidInput, ProviderNotConfigured, ProviderRejected, ProviderUnreachable
from kataru.services.factory import build_lipsync_adapter
from kataru.services.providers.base import GenerationRequest, ProviderPhase
from kataru.services.providers.did_lipsync import map_talk_status

from conftest import DID_HOST


@pytest.fixture
def adapter(settings, storage, http_client):
    return build_lipsync_adapter(settings, storage, http_client)


def _request(adapter, **params):
    refs, prepared = adapter.prepare(
        {"avatar_image": "face.png", "product_image": "bottle.png"},
        {"script_text": "新商品のご紹介です。", **params},
    )
    return GenerationRequest(job_id="job-1", input_refs=refs, parameters=prepared)


@pytest.mark.parametrize(
    "raw, phase",
    [
        ("created", ProviderPhase.PENDING),
        ("started", ProviderPhase.PENDING),
        (None, ProviderPhase.PENDING),
        ("done", ProviderPhase.SUCCEEDED),
        ("error", ProviderPhase.FAILED),
        ("failed", ProviderPhase.FAILED),
    ],
)
def test_map_talk_status(raw, phase):
    assert map_talk_status(raw) is phase


def test_prepare_requires_both_images(adapter):
    with pytest.raises(InvalidInput):
        adapter.prepare({"avatar_image": "face.png"}, {"script_text": "hi"})


def test_prepare_turns_own_public_urls_into_keys(adapter):
    refs, _ = adapter.prepare(
        {
            "avatar_image": "http://testserver/media/kataru-avatars/face.png",
            "product_image": "https://elsewhere.example/bottle.png",
        },
        {"script_text": "hi"},
    )
    assert refs == {
        "avatar_image": "face.png",
        "product_image": "https://elsewhere.example/bottle.png",
    }


async def test_start_posts_talk_with_basic_auth(adapter, fake):
    submission = await adapter.start(_request(adapter))

    assert submission.correlation_id == "tlk_123"
    (sent,) = fake.requests_to(DID_HOST, "POST")
    assert sent.headers["Authorization"] == "Basic did-key"
    body = json.loads(sent.content)
    assert body["source_url"] == "http://testserver/media/kataru-avatars/face.png"
    assert body["script"]["input"] == "新商品のご紹介です。"
    assert body["script"]["provider"] == {"type": "microsoft", "voice_id": "ja-JP-NanamiNeural"}
    assert body["config"] == {"stitch": True}


async def test_start_keeps_existing_auth_prefix(settings, storage, http_client, fake):
    settings.D_ID_API_KEY = "Basic already-encoded"
    adapter = build_lipsync_adapter(settings, storage, http_client)

    await adapter.start(_request(adapter))

    assert fake.requests_to(DID_HOST, "POST")[0].headers["Authorization"] == "Basic already-encoded"


async def test_start_without_credential_is_not_configured(settings, storage, http_client, fake):
    settings.D_ID_API_KEY = ""
    adapter = build_lipsync_adapter(settings, storage, http_client)

    with pytest.raises(ProviderNotConfigured):
        await adapter.start(_request(adapter))
    assert fake.requests == []


async def test_start_rejection_carries_provider_message(adapter, fake):
    fake.did_submit = [(400, {"kind": "ValidationError", "description": "bad", "message": "invalid voice"})]

    with pytest.raises(ProviderRejected) as excinfo:
        await adapter.start(_request(adapter))

    assert excinfo.value.message == "invalid voice"
    assert excinfo.value.provider_status == 400


async def test_start_without_talk_id_is_rejected(adapter, fake):
    fake.did_submit = [(201, {"status": "created"})]

    with pytest.raises(ProviderRejected):
        await adapter.start(_request(adapter))


async def test_start_transport_failure_is_unreachable(adapter, fake):
    fake.unreachable_hosts.add(DID_HOST)

    with pytest.raises(ProviderUnreachable):
        await adapter.start(_request(adapter))


async def test_fetch_status_done_and_error(adapter, fake):
    fake.did_status = [
        (200, {"status": "done", "result_url": "https://cdn.test/tlk_123.mp4"}),
        (200, {"status": "error", "error": {"message": "face not detected"}}),
        (200, {"status": "error"}),
    ]

    done = await adapter.fetch_status("tlk_123")
    failed = await adapter.fetch_status("tlk_123")
    bare = await adapter.fetch_status("tlk_123")

    assert done.phase is ProviderPhase.SUCCEEDED
    assert done.result_url == "https://cdn.test/tlk_123.mp4"
    assert failed.phase is ProviderPhase.FAILED
    assert failed.message == "face not detected"
    assert bare.message == "D-ID failed."


async def test_fetch_status_http_error_is_unreachable(adapter, fake):
    fake.did_status = [(500, {"message": "oops"})]

    with pytest.raises(ProviderUnreachable):
        await adapter.fetch_status("tlk_123")


async def test_list_voices_filters_by_locale(adapter, fake):
    fake.did_voices = (200, [
        {"id": "ja-JP-NanamiNeural", "language": "ja-JP"},
        {"id": "en-US-JennyNeural", "language": "en-US"},
    ])

    voices = await adapter.list_voices(provider="microsoft", locale="ja")

    assert [v["id"] for v in voices] == ["ja-JP-NanamiNeural"]
    assert fake.requests_to(DID_HOST, "GET")[0].url.params["provider"] == "microsoft"
