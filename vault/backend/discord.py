"""Discord REST client used as the remote chunk store."""

import asyncio
import json
from typing import Any, Callable, Dict, List, Optional, Tuple

import aiohttp

from common.constants import (
    BACKEND_MAX_RATE_LIMIT_RETRIES,
    BACKEND_TIMEOUT_SECONDS,
    DISCORD_API_BASE,
    NOTIFICATION_QUEUE_SIZE,
)
from common.logging_config import get_logger
from vault.backend.base import StorageBackend, UploadNotice
from vault.exceptions import BackendError
from vault.utils import format_upload_notice

logger = get_logger(__name__)


class DiscordBackend(StorageBackend):
    """
    Stores each blob as the single attachment of a message in one channel.

    The message id is the remote identifier. One aiohttp session is shared
    by all callers; completion notices go through a bounded queue drained
    by a background sender.
    """

    def __init__(
        self,
        token: str,
        channel_id: str,
        api_base: str = DISCORD_API_BASE,
        timeout: float = BACKEND_TIMEOUT_SECONDS,
        queue_size: int = NOTIFICATION_QUEUE_SIZE,
        max_rate_limit_retries: int = BACKEND_MAX_RATE_LIMIT_RETRIES,
    ):
        self.channel_id = channel_id
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self.max_rate_limit_retries = max_rate_limit_retries
        self._token = token
        self._queue_size = queue_size
        self._session: Optional[aiohttp.ClientSession] = None
        self._notifications: Optional[asyncio.Queue] = None
        self._sender_task: Optional[asyncio.Task] = None

    @property
    def _auth_headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bot {self._token}"}

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers={"User-Agent": "DiscordBot (chunk-vault, 1.0)"},
            )
            logger.info(f"Opened HTTP session to {self.api_base}")
        return self._session

    async def start(self) -> None:
        self._ensure_session()
        if self._sender_task is None:
            self._notifications = asyncio.Queue(maxsize=self._queue_size)
            self._sender_task = asyncio.create_task(self._notification_loop())
            logger.info("Notification sender started")

    async def close(self) -> None:
        if self._sender_task is not None:
            try:
                await asyncio.wait_for(self._notifications.join(), timeout=5)
            except asyncio.TimeoutError:
                logger.warning(f"Dropping {self._notifications.qsize()} pending notifications on shutdown")
            self._sender_task.cancel()
            try:
                await self._sender_task
            except asyncio.CancelledError:
                pass
            self._sender_task = None
            self._notifications = None

        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _request(
        self,
        method: str,
        path: str,
        form_factory: Optional[Callable[[], aiohttp.FormData]] = None,
        **kwargs: Any,
    ) -> Tuple[int, bytes]:
        """
        Issue an API request, waiting out 429 responses.

        Args:
            method: HTTP method
            path: Path below the API base (e.g., '/channels/1/messages')
            form_factory: Builds a fresh multipart body per attempt
            **kwargs: Passed to aiohttp (json=, params=, ...)

        Returns:
            Tuple of (status, body bytes)

        Raises:
            BackendError: On transport failure, timeout or exhausted rate-limit retries
        """
        session = self._ensure_session()
        url = f"{self.api_base}{path}"

        for attempt in range(self.max_rate_limit_retries + 1):
            if form_factory is not None:
                kwargs["data"] = form_factory()
            try:
                async with session.request(method, url, headers=self._auth_headers, **kwargs) as resp:
                    body = await resp.read()
                    if resp.status != 429:
                        return resp.status, body
                    retry_after = _retry_after(body, resp.headers)
            except asyncio.TimeoutError as e:
                raise BackendError(f"{method} {path} timed out after {self.timeout}s") from e
            except aiohttp.ClientError as e:
                raise BackendError(f"{method} {path} failed: {e}") from e

            if attempt < self.max_rate_limit_retries:
                logger.warning(
                    f"Rate limited on {method} {path}, retrying in {retry_after:.2f}s "
                    f"(attempt {attempt + 1}/{self.max_rate_limit_retries})"
                )
                await asyncio.sleep(retry_after)

        raise BackendError(f"{method} {path} still rate limited after {self.max_rate_limit_retries} retries")

    async def upload(self, label: str, blob: bytes) -> str:
        def build_form() -> aiohttp.FormData:
            form = aiohttp.FormData()
            form.add_field(
                "payload_json",
                json.dumps({"attachments": [{"id": 0, "filename": label}]}),
                content_type="application/json",
            )
            form.add_field("files[0]", blob, filename=label, content_type="application/octet-stream")
            return form

        status, body = await self._request(
            "POST", f"/channels/{self.channel_id}/messages", form_factory=build_form
        )
        if status not in (200, 201):
            raise BackendError(f"Upload of {label} rejected with status {status}: {_excerpt(body)}")

        try:
            message_id = str(json.loads(body)["id"])
        except (ValueError, KeyError, TypeError) as e:
            raise BackendError(f"Upload of {label} returned no message id: {_excerpt(body)}") from e
        logger.debug(f"Uploaded {label} ({len(blob)} bytes) as message {message_id}")
        return message_id

    async def get_message(self, message_id: str) -> Optional[Dict[str, Any]]:
        """
        Fetch a message from the storage channel.

        Returns:
            Message object, or None if it does not exist
        """
        status, body = await self._request("GET", f"/channels/{self.channel_id}/messages/{message_id}")
        if status == 404:
            return None
        if status != 200:
            raise BackendError(f"Fetching message {message_id} failed with status {status}: {_excerpt(body)}")
        return json.loads(body)

    async def fetch_url(self, url: str) -> bytes:
        """
        Download attachment content from the CDN (no bot credentials sent).
        """
        session = self._ensure_session()
        try:
            async with session.get(url) as resp:
                if resp.status != 200:
                    raise BackendError(f"Attachment download failed with status {resp.status}")
                return await resp.read()
        except asyncio.TimeoutError as e:
            raise BackendError(f"Attachment download timed out after {self.timeout}s") from e
        except aiohttp.ClientError as e:
            raise BackendError(f"Attachment download failed: {e}") from e

    async def open_url(self, url: str) -> aiohttp.ClientResponse:
        """
        Open a streaming GET on an attachment URL. Caller must release the response.
        """
        session = self._ensure_session()
        try:
            resp = await session.get(url)
        except asyncio.TimeoutError as e:
            raise BackendError(f"Attachment download timed out after {self.timeout}s") from e
        except aiohttp.ClientError as e:
            raise BackendError(f"Attachment download failed: {e}") from e
        if resp.status != 200:
            resp.release()
            raise BackendError(f"Attachment download failed with status {resp.status}")
        return resp

    async def fetch(self, remote_id: str) -> Optional[bytes]:
        message = await self.get_message(remote_id)
        if message is None or not message.get("attachments"):
            return None
        return await self.fetch_url(message["attachments"][0]["url"])

    async def delete(self, remote_id: str) -> bool:
        status, body = await self._request("DELETE", f"/channels/{self.channel_id}/messages/{remote_id}")
        if status in (200, 204):
            return True
        if status == 404:
            logger.debug(f"Message {remote_id} already gone")
            return False
        raise BackendError(f"Deleting message {remote_id} failed with status {status}: {_excerpt(body)}")

    async def send_message(self, content: str) -> str:
        status, body = await self._request(
            "POST", f"/channels/{self.channel_id}/messages", json={"content": content}
        )
        if status not in (200, 201):
            raise BackendError(f"Sending message failed with status {status}: {_excerpt(body)}")
        return json.loads(body)["id"]

    def notify_upload(self, notice: UploadNotice) -> None:
        if self._notifications is None:
            logger.warning(f"Notification sender not running, dropping notice for {notice.name!r}")
            return
        try:
            self._notifications.put_nowait(notice)
        except asyncio.QueueFull:
            logger.warning(f"Notification queue full, dropping notice for {notice.name!r}")

    async def _notification_loop(self) -> None:
        while True:
            notice = await self._notifications.get()
            try:
                await self.send_message(
                    format_upload_notice(notice.name, notice.size, notice.parts, notice.origin)
                )
            except Exception as e:
                logger.warning(f"Failed to send upload notice for {notice.name!r}: {e}")
            finally:
                self._notifications.task_done()

    async def edit_interaction_response(self, application_id: str, interaction_token: str, content: str) -> None:
        """
        Replace the content of a deferred interaction response.
        """
        status, body = await self._request(
            "PATCH",
            f"/webhooks/{application_id}/{interaction_token}/messages/@original",
            json={"content": content},
        )
        if status != 200:
            raise BackendError(f"Editing interaction response failed with status {status}: {_excerpt(body)}")

    async def register_commands(self, application_id: str, commands: List[Dict[str, Any]]) -> None:
        """
        Overwrite the global slash-command set of the application.
        """
        status, body = await self._request(
            "PUT", f"/applications/{application_id}/commands", json=commands
        )
        if status not in (200, 201):
            raise BackendError(f"Command registration failed with status {status}: {_excerpt(body)}")
        logger.info(f"Registered {len(commands)} application commands")


def _retry_after(body: bytes, headers) -> float:
    try:
        return max(float(json.loads(body)["retry_after"]), 0.0)
    except (ValueError, KeyError, TypeError):
        pass
    try:
        return max(float(headers.get("Retry-After", 1)), 0.0)
    except (TypeError, ValueError):
        return 1.0


def _excerpt(body: bytes, limit: int = 200) -> str:
    return body[:limit].decode("utf-8", errors="replace")
