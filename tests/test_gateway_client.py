"""Tests for the gateway HTTP client."""

import json

import httpx
import pytest

from polaroid_gateway.gateway_client import (
    OUTPUTS_PATH,
    RUN_PATH,
    STATUS_PATH,
    UPLOAD_PATH,
    GatewayBusinessError,
    GatewayClient,
    GatewayPayloadError,
    GatewayTransportError,
)


def make_client(handler):
    return GatewayClient(
        base_url="https://gateway.test/",
        api_key="test-key",
        webapp_id="1912088541617422337",
        node_id="226",
        timeout=5.0,
        transport=httpx.MockTransport(handler),
    )


def envelope(data, code=0, msg="success"):
    return httpx.Response(200, json={"code": code, "msg": msg, "data": data})


@pytest.mark.asyncio
async def test_upload_sends_multipart_with_api_key():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["api_key"] = request.url.params.get("apiKey")
        seen["body"] = request.content
        return envelope({"fileName": "api/abc123.png", "fileType": "image"})

    client = make_client(handler)
    data = await client.upload(b"jpeg-bytes", "photo.jpg")
    await client.close()

    assert data.file_name == "api/abc123.png"
    assert seen["path"] == UPLOAD_PATH
    assert seen["api_key"] == "test-key"
    assert b"jpeg-bytes" in seen["body"]
    assert b'name="file"' in seen["body"]


@pytest.mark.asyncio
async def test_run_sends_workflow_payload():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["json"] = json.loads(request.content)
        return envelope({"taskId": "t-1", "taskStatus": "RUNNING"})

    client = make_client(handler)
    data = await client.run("abc123")
    await client.close()

    assert data.task_id == "t-1"
    assert seen["path"] == RUN_PATH
    assert seen["json"] == {
        "webappId": "1912088541617422337",
        "apiKey": "test-key",
        "nodeInfoList": [{"nodeId": "226", "fieldName": "image", "fieldValue": "abc123"}],
    }


@pytest.mark.asyncio
async def test_status_returns_raw_data():
    def handler(request):
        assert request.url.path == STATUS_PATH
        assert json.loads(request.content) == {"apiKey": "test-key", "taskId": "t-1"}
        return envelope("RUNNING")

    client = make_client(handler)
    assert await client.status("t-1") == "RUNNING"
    await client.close()


@pytest.mark.asyncio
async def test_outputs_parses_items():
    def handler(request):
        assert request.url.path == OUTPUTS_PATH
        return envelope([{"fileUrl": "https://x/y.png", "fileType": "png", "taskCostTime": "12"}])

    client = make_client(handler)
    items = await client.outputs("t-1")
    await client.close()

    assert items[0].file_url == "https://x/y.png"
    assert items[0].file_type == "png"


@pytest.mark.asyncio
async def test_business_error():
    client = make_client(lambda request: envelope(None, code=805, msg="APIKEY_INVALID"))

    with pytest.raises(GatewayBusinessError) as exc_info:
        await client.status("t-1")
    await client.close()

    assert exc_info.value.code == 805
    assert exc_info.value.msg == "APIKEY_INVALID"


@pytest.mark.asyncio
async def test_non_2xx_is_transport_error():
    client = make_client(lambda request: httpx.Response(502, text="bad gateway"))

    with pytest.raises(GatewayTransportError) as exc_info:
        await client.run("abc123")
    await client.close()

    assert exc_info.value.status_code == 502
    assert exc_info.value.body == "bad gateway"


@pytest.mark.asyncio
async def test_undecodable_body_is_transport_error():
    client = make_client(lambda request: httpx.Response(200, text="<html>"))

    with pytest.raises(GatewayTransportError):
        await client.status("t-1")
    await client.close()


@pytest.mark.asyncio
async def test_network_error_is_transport_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = make_client(handler)
    with pytest.raises(GatewayTransportError):
        await client.upload(b"jpeg-bytes")
    await client.close()


@pytest.mark.asyncio
async def test_missing_task_id_is_payload_error():
    client = make_client(lambda request: envelope({"taskStatus": "RUNNING"}))

    with pytest.raises(GatewayPayloadError):
        await client.run("abc123")
    await client.close()


@pytest.mark.asyncio
async def test_outputs_not_a_list_is_payload_error():
    client = make_client(lambda request: envelope({"fileUrl": "https://x/y.png"}))

    with pytest.raises(GatewayPayloadError):
        await client.outputs("t-1")
    await client.close()


@pytest.mark.asyncio
async def test_raw_upload_returns_business_errors_untouched():
    client = make_client(lambda request: envelope(None, code=301, msg="PARAMS_INVALID"))

    body = await client.upload_raw(b"jpeg-bytes")
    await client.close()

    assert body == {"code": 301, "msg": "PARAMS_INVALID", "data": None}
