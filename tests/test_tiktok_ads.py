"""Tests for the TikTok adapter against a mocked HTTP transport."""

import json
from datetime import datetime

import httpx
import pytest

from campaign_builder.platforms.base import (
    AdGroupSpec,
    CampaignSpec,
    CampaignState,
    CreativeSpec,
    Platform,
    PlatformCredential,
)
from campaign_builder.platforms.exceptions import (
    AssetUploadError,
    PlatformRequestError,
    PlatformTimeoutError,
)
from campaign_builder.platforms.tiktok_ads import TikTokAdsAdapter, map_objective
from campaign_builder.utils.image_utils import md5_hex
from tests.conftest import make_image

BASE_URL = "https://tiktok.test/open_api/v1.3"
CREDENTIAL = PlatformCredential(
    platform=Platform.TIKTOK, access_token="tt-token", config={"advertiser_id": "adv-9"}
)


class Recorder:
    """MockTransport handler that answers from a path -> payload table."""

    def __init__(self, responses: dict[str, dict]):
        self.responses = responses
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix("/open_api/v1.3")
        return httpx.Response(200, json=self.responses[path])

    def body(self, index: int = -1) -> dict:
        return json.loads(self.requests[index].content)


def _adapter(handler) -> TikTokAdsAdapter:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return TikTokAdsAdapter(BASE_URL, client=client)


def _ok(**data) -> dict:
    return {"code": 0, "message": "OK", "data": data}


def test_map_objective():
    assert map_objective("OUTCOME_SALES") == "CONVERSIONS"
    assert map_objective("reach") == "REACH"
    assert map_objective("something_else") == "TRAFFIC"


@pytest.mark.asyncio
async def test_create_campaign():
    recorder = Recorder({"/campaign/create/": _ok(campaign_id=1800)})
    adapter = _adapter(recorder)

    remote_id = await adapter.create_campaign(
        "adv-1", CampaignSpec(name="Spring", objective="OUTCOME_TRAFFIC"), CREDENTIAL
    )

    assert remote_id == "1800"
    request = recorder.requests[0]
    assert request.headers["Access-Token"] == "tt-token"
    assert recorder.body() == {
        "advertiser_id": "adv-1",
        "campaign_name": "Spring",
        "objective_type": "TRAFFIC",
        "budget_mode": "BUDGET_MODE_INFINITE",
        "operation_status": "DISABLE",
    }


@pytest.mark.asyncio
async def test_create_ad_group_budget_in_major_units():
    recorder = Recorder({"/adgroup/create/": _ok(adgroup_id="ag-1")})
    adapter = _adapter(recorder)

    remote_id = await adapter.create_ad_group(
        "adv-1",
        "1800",
        AdGroupSpec(
            name="Group",
            objective="OUTCOME_SALES",
            budget_cents=4550,
            targeting={"location_ids": ["6252001"], "interests": ["ignored"]},
            schedule_start=datetime(2026, 11, 1, 8, 30),
        ),
        CREDENTIAL,
    )

    assert remote_id == "ag-1"
    body = recorder.body()
    assert body["campaign_id"] == "1800"
    assert body["budget"] == 45.5
    assert body["budget_mode"] == "BUDGET_MODE_DAY"
    assert body["optimization_goal"] == "CONVERT"
    assert body["bid_type"] == "BID_TYPE_NO_BID"
    assert body["schedule_type"] == "SCHEDULE_FROM_NOW"
    assert body["schedule_start_time"] == "2026-11-01 08:30:00"
    assert body["location_ids"] == ["6252001"]
    assert "interests" not in body


@pytest.mark.asyncio
async def test_create_ad_group_budget_floor_and_lifetime():
    recorder = Recorder({"/adgroup/create/": _ok(adgroup_id="ag-2")})
    adapter = _adapter(recorder)

    await adapter.create_ad_group(
        "adv-1",
        "1800",
        AdGroupSpec(name="G", objective="TRAFFIC", budget_type="lifetime", budget_cents=500),
        CREDENTIAL,
    )

    body = recorder.body()
    assert body["budget"] == 20.0
    assert body["budget_mode"] == "BUDGET_MODE_TOTAL"


@pytest.mark.asyncio
async def test_create_ad_has_no_creative_id():
    recorder = Recorder({"/ad/create/": _ok(ad_id="ad-7")})
    adapter = _adapter(recorder)

    ids = await adapter.create_creative_and_ad(
        "adv-1",
        "ag-1",
        CreativeSpec(name="Ad", headline="Hi", link_url="https://x.io", image_handle="img-1"),
        CREDENTIAL,
    )

    assert ids.ad_id == "ad-7"
    assert ids.creative_id is None
    body = recorder.body()
    assert body["ad_text"] == "Hi"
    assert body["image_ids"] == ["img-1"]
    assert body["landing_page_url"] == "https://x.io"


@pytest.mark.asyncio
async def test_upload_image_signs_payload():
    recorder = Recorder({"/file/image/ad/upload/": _ok(image_id="img-42")})
    adapter = _adapter(recorder)
    data = make_image(300, 300, fmt="JPEG")

    handle = await adapter.upload_asset("adv-1", data, "hero.jpg", CREDENTIAL)

    assert handle == "img-42"
    content = recorder.requests[0].content
    assert md5_hex(data).encode() in content
    assert b"UPLOAD_BY_FILE" in content


@pytest.mark.asyncio
async def test_upload_rejects_unsupported_format():
    adapter = _adapter(Recorder({}))

    with pytest.raises(AssetUploadError, match="Unsupported format"):
        await adapter.upload_asset("adv-1", make_image(fmt="GIF"), "anim.gif", CREDENTIAL)


@pytest.mark.asyncio
async def test_upload_api_error_becomes_asset_error():
    adapter = _adapter(
        Recorder({"/file/image/ad/upload/": {"code": 40002, "message": "Image too large"}})
    )

    with pytest.raises(AssetUploadError, match="Image too large"):
        await adapter.upload_asset("adv-1", make_image(), "hero.png", CREDENTIAL)


@pytest.mark.asyncio
async def test_activate_uses_configured_advertiser():
    recorder = Recorder({"/campaign/status/update/": _ok()})
    adapter = _adapter(recorder)

    await adapter.update_campaign_state("1800", CampaignState.ACTIVE, CREDENTIAL)

    assert recorder.body() == {
        "advertiser_id": "adv-9",
        "campaign_ids": ["1800"],
        "operation_status": "ENABLE",
    }


@pytest.mark.asyncio
async def test_missing_advertiser_id():
    adapter = _adapter(Recorder({}))
    credential = PlatformCredential(platform=Platform.TIKTOK, access_token="t")

    with pytest.raises(PlatformRequestError, match="advertiser id"):
        await adapter.update_campaign_state("1800", CampaignState.ACTIVE, credential)


@pytest.mark.asyncio
async def test_nonzero_code_is_error():
    adapter = _adapter(
        Recorder({"/campaign/create/": {"code": 40100, "message": "Access token expired"}})
    )

    with pytest.raises(PlatformRequestError) as exc_info:
        await adapter.create_campaign(
            "adv-1", CampaignSpec(name="C", objective="TRAFFIC"), CREDENTIAL
        )

    assert str(exc_info.value) == "Access token expired"
    assert exc_info.value.details["code"] == 40100


@pytest.mark.asyncio
async def test_invalid_json_is_error():
    adapter = _adapter(lambda request: httpx.Response(502, text="<html>Bad gateway</html>"))

    with pytest.raises(PlatformRequestError, match="invalid JSON"):
        await adapter.create_campaign(
            "adv-1", CampaignSpec(name="C", objective="TRAFFIC"), CREDENTIAL
        )


@pytest.mark.asyncio
async def test_transport_timeout():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    adapter = _adapter(handler)

    with pytest.raises(PlatformTimeoutError):
        await adapter.create_campaign(
            "adv-1", CampaignSpec(name="C", objective="TRAFFIC"), CREDENTIAL
        )


@pytest.mark.asyncio
async def test_aclose_leaves_injected_client_open():
    client = httpx.AsyncClient(transport=httpx.MockTransport(Recorder({})))
    adapter = TikTokAdsAdapter(BASE_URL, client=client)

    await adapter.aclose()

    assert client.is_closed is False
    await client.aclose()
