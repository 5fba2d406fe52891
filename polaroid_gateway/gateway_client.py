"""HTTP client for the remote image-generation gateway (RunningHub open API)."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)

UPLOAD_PATH = "/task/openapi/upload"
RUN_PATH = "/task/openapi/ai-app/run"
STATUS_PATH = "/task/openapi/status"
OUTPUTS_PATH = "/task/openapi/outputs"
PING_PATH = "/task/openapi/ping"


class GatewayError(Exception):
    """Base exception for gateway errors."""
    pass


class GatewayTransportError(GatewayError):
    """Network failure, timeout, non-2xx status or undecodable body."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class GatewayBusinessError(GatewayError):
    """Gateway answered but reported ``code != 0``."""

    def __init__(self, code: int, msg: Optional[str] = None):
        super().__init__(msg or f"gateway returned code {code}")
        self.code = code
        self.msg = msg


class GatewayPayloadError(GatewayError):
    """Successful envelope whose ``data`` is missing required fields."""
    pass


class GatewayEnvelope(BaseModel):
    code: int
    msg: Optional[str] = None
    data: Any = None


class UploadData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    file_name: str = Field(alias="fileName")
    file_type: Optional[str] = Field(default=None, alias="fileType")


class RunData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    task_id: str = Field(alias="taskId")
    client_id: Optional[str] = Field(default=None, alias="clientId")
    net_wss_url: Optional[str] = Field(default=None, alias="netWssUrl")
    task_status: Optional[str] = Field(default=None, alias="taskStatus")
    prompt_tips: Optional[str] = Field(default=None, alias="promptTips")


class OutputItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    file_url: Optional[str] = Field(default=None, alias="fileUrl")
    file_type: Optional[str] = Field(default=None, alias="fileType")
    task_cost_time: Optional[Any] = Field(default=None, alias="taskCostTime")
    node_id: Optional[str] = Field(default=None, alias="nodeId")


class GatewayClient:
    """
    Async client for the four gateway endpoints used by the workflow.

    One instance is created at startup and shared; the underlying
    ``httpx.AsyncClient`` is created lazily and closed with :meth:`close`.
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str],
        webapp_id: str,
        node_id: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize gateway client.

        Args:
            base_url: Gateway base URL (e.g., https://www.runninghub.cn)
            api_key: Gateway API key
            webapp_id: Application/workflow identifier passed to the run endpoint
            node_id: Node inside the workflow that receives the uploaded image
            timeout: HTTP request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.webapp_id = webapp_id
        self.node_id = node_id
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create async HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                follow_redirects=True,
                transport=self._transport,
                headers={"Accept": "application/json"},
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request_raw(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        """Issue a request and return the decoded JSON body; only transport failures raise."""
        client = await self._get_client()
        try:
            response = await client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"Gateway {path} request failed: {e}")
            raise GatewayTransportError(f"gateway request failed: {e}") from e

        if response.status_code < 200 or response.status_code >= 300:
            logger.error(f"Gateway {path} returned {response.status_code}: {response.text[:200]}")
            raise GatewayTransportError(
                f"gateway returned {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            return response.json()
        except ValueError as e:
            raise GatewayTransportError(
                f"gateway returned an unreadable body: {e}",
                status_code=response.status_code,
                body=response.text,
            ) from e

    async def _send(self, method: str, path: str, **kwargs: Any) -> GatewayEnvelope:
        body = await self._request_raw(method, path, **kwargs)
        try:
            envelope = GatewayEnvelope.model_validate(body)
        except ValidationError as e:
            raise GatewayTransportError(f"gateway returned an unexpected body: {e}", body=body) from e

        if envelope.code != 0:
            logger.warning(f"Gateway {path} business error code={envelope.code} msg={envelope.msg}")
            raise GatewayBusinessError(envelope.code, envelope.msg)
        return envelope

    def _upload_kwargs(self, image: bytes, filename: str, content_type: str) -> Dict[str, Any]:
        return {
            "params": {"apiKey": self.api_key},
            "files": {"file": (filename, image, content_type)},
        }

    def build_run_payload(self, file_name: str) -> Dict[str, Any]:
        return {
            "webappId": self.webapp_id,
            "apiKey": self.api_key,
            "nodeInfoList": [
                {
                    "nodeId": self.node_id,
                    "fieldName": "image",
                    "fieldValue": file_name,
                }
            ],
        }

    async def upload_raw(self, image: bytes, filename: str = "image.jpg", content_type: str = "image/jpeg") -> Dict[str, Any]:
        """
        Upload image bytes and return the gateway envelope untouched.

        Business errors are returned, not raised; the proxy route hands them
        back to the browser as-is.
        """
        return await self._request_raw("POST", UPLOAD_PATH, **self._upload_kwargs(image, filename, content_type))

    async def run_raw(self, file_name: str) -> Dict[str, Any]:
        """Start the workflow and return the gateway envelope untouched."""
        return await self._request_raw("POST", RUN_PATH, json=self.build_run_payload(file_name))

    async def upload(self, image: bytes, filename: str = "image.jpg", content_type: str = "image/jpeg") -> UploadData:
        """Upload image bytes, returning the gateway-assigned file name."""
        envelope = await self._send("POST", UPLOAD_PATH, **self._upload_kwargs(image, filename, content_type))
        try:
            data = UploadData.model_validate(envelope.data)
        except ValidationError as e:
            raise GatewayPayloadError(f"upload response missing fileName: {envelope.data!r}") from e
        logger.info(f"Uploaded image as {data.file_name}")
        return data

    async def run(self, file_name: str) -> RunData:
        """Start the configured workflow on an uploaded file."""
        envelope = await self._send("POST", RUN_PATH, json=self.build_run_payload(file_name))
        try:
            data = RunData.model_validate(envelope.data)
        except ValidationError as e:
            raise GatewayPayloadError(f"run response missing taskId: {envelope.data!r}") from e
        logger.info(f"Started task {data.task_id} for {file_name}")
        return data

    async def status(self, task_id: str) -> Any:
        """Return the raw ``data`` member of the status response (string or object)."""
        envelope = await self._send(
            "POST",
            STATUS_PATH,
            json={"apiKey": self.api_key, "taskId": task_id},
        )
        return envelope.data

    async def outputs(self, task_id: str) -> List[OutputItem]:
        """Return the output items produced by a finished task."""
        envelope = await self._send(
            "POST",
            OUTPUTS_PATH,
            json={"apiKey": self.api_key, "taskId": task_id},
        )
        if not isinstance(envelope.data, list):
            raise GatewayPayloadError(f"outputs response is not a list: {envelope.data!r}")
        try:
            return [OutputItem.model_validate(item) for item in envelope.data]
        except ValidationError as e:
            raise GatewayPayloadError(f"malformed output item: {e}") from e

    async def ping(self) -> Dict[str, Any]:
        """Connectivity check used by the debug route."""
        return await self._request_raw("GET", PING_PATH, params={"apiKey": self.api_key})
