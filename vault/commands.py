"""Slash-command front-end: parses interactions and runs them against the pipeline."""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

import aiohttp

from common.logging_config import get_logger
from vault.backend.discord import DiscordBackend
from vault.exceptions import BackendError, DuplicateFileError, NotFoundError, VaultException
from vault.services.object_pipeline import ObjectPipeline
from vault.utils import format_bytes

logger = get_logger(__name__)

INTERACTION_PING = 1
INTERACTION_APPLICATION_COMMAND = 2

RESPONSE_PONG = 1
RESPONSE_CHANNEL_MESSAGE = 4

FLAG_EPHEMERAL = 1 << 6

OPTION_INTEGER = 4
OPTION_ATTACHMENT = 11

COMMAND_DEFINITIONS: List[Dict[str, Any]] = [
    {"name": "help", "description": "Show available commands"},
    {"name": "ping", "description": "Check bot latency"},
    {"name": "list", "description": "List all stored files"},
    {
        "name": "upload",
        "description": "Upload a file to the vault",
        "options": [
            {"type": OPTION_ATTACHMENT, "name": "file", "description": "File to upload", "required": True},
        ],
    },
    {
        "name": "delete",
        "description": "Delete a file from the vault",
        "options": [
            {"type": OPTION_INTEGER, "name": "id", "description": "File ID", "required": True},
        ],
    },
]


@dataclass(frozen=True)
class CommandInvocation:
    """
    One application-command interaction, reduced to what the handlers need.
    """
    name: str
    user_id: str
    username: str
    options: Dict[str, Any] = field(default_factory=dict)
    attachments: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    application_id: str = ""
    token: str = ""

    @classmethod
    def from_interaction(cls, payload: Dict[str, Any]) -> 'CommandInvocation':
        data = payload.get("data") or {}
        user = (payload.get("member") or {}).get("user") or payload.get("user") or {}
        options = {opt["name"]: opt.get("value") for opt in data.get("options") or []}
        attachments = (data.get("resolved") or {}).get("attachments") or {}

        return cls(
            name=data.get("name", ""),
            user_id=str(user.get("id", "")),
            username=user.get("username", "unknown"),
            options=options,
            attachments=attachments,
            application_id=str(payload.get("application_id", "")),
            token=payload.get("token", ""),
        )


@dataclass(frozen=True)
class CommandReply:
    """
    Immediate answer to an interaction. follow_up marks commands whose real
    result is delivered later by editing this message.
    """
    content: str = ""
    embeds: List[Dict[str, Any]] = field(default_factory=list)
    ephemeral: bool = False
    follow_up: bool = False

    def to_response(self) -> Dict[str, Any]:
        """
        Render as an interaction response body.
        """
        data: Dict[str, Any] = {}
        if self.content:
            data["content"] = self.content
        if self.embeds:
            data["embeds"] = self.embeds
        if self.ephemeral:
            data["flags"] = FLAG_EPHEMERAL

        response: Dict[str, Any] = {"type": RESPONSE_CHANNEL_MESSAGE}
        if data:
            response["data"] = data
        return response


HELP_EMBED = {
    "title": "Discord Vault 🛡️",
    "description": "High-security file storage using Discord and AES-256.",
    "color": 0x3B82F6,
    "fields": [
        {"name": "/upload", "value": "Store a file securely"},
        {"name": "/list", "value": "List all secured assets"},
        {"name": "/delete [id]", "value": "Purge an asset from the vault"},
    ],
}


class CommandDispatcher:
    """
    Routes slash commands to pipeline operations, gated by an allow-list.

    An empty allow-list admits every caller. Quick commands are answered
    inline; upload and delete are acknowledged immediately and finished by
    run_follow_up(), which edits the original response.
    """

    def __init__(self, pipeline: ObjectPipeline, backend: DiscordBackend, allowed_users: Iterable[str] = ()):
        self.pipeline = pipeline
        self.backend = backend
        self.allowed_users = frozenset(allowed_users)

    def is_allowed(self, user_id: str) -> bool:
        return not self.allowed_users or user_id in self.allowed_users

    async def dispatch(self, invocation: CommandInvocation) -> CommandReply:
        logger.info(f"Command /{invocation.name} by {invocation.username}")

        if not self.is_allowed(invocation.user_id):
            logger.warning(f"Unauthorized access attempt by {invocation.username} ({invocation.user_id})")
            return CommandReply(content="⛔ Access Denied.", ephemeral=True)

        if invocation.name == "help":
            return CommandReply(embeds=[HELP_EMBED])
        if invocation.name == "ping":
            return CommandReply(content="Pong! 🏓")
        if invocation.name == "list":
            return CommandReply(content=self._render_list())
        if invocation.name == "upload":
            return CommandReply(content="⏳ Processing & Encrypting...", follow_up=True)
        if invocation.name == "delete":
            return CommandReply(content="💣 Purging...", follow_up=True)

        return CommandReply(content=f"Unknown command: /{invocation.name}", ephemeral=True)

    def _render_list(self) -> str:
        files = self.pipeline.list_files()
        lines = ["📂 **Vault Assets:**", ""]
        if not files:
            lines.append("*Empty*")
        for f in files:
            lines.append(f"`#{f.id}` **{f.name}** ({format_bytes(f.size)})")
        return "\n".join(lines)

    async def complete(self, invocation: CommandInvocation) -> str:
        """
        Execute a follow-up command and return the final message text.
        """
        if invocation.name == "upload":
            return await self._handle_upload(invocation)
        if invocation.name == "delete":
            return await self._handle_delete(invocation)
        return f"Unknown command: /{invocation.name}"

    async def run_follow_up(self, invocation: CommandInvocation) -> None:
        """Complete a slow command and replace the progress message with the outcome."""
        try:
            content = await self.complete(invocation)
        except Exception as e:
            logger.error(f"/{invocation.name} failed unexpectedly: {e}", exc_info=True)
            content = f"❌ /{invocation.name} failed unexpectedly."
        try:
            await self.backend.edit_interaction_response(invocation.application_id, invocation.token, content)
        except BackendError as e:
            logger.error(f"Could not deliver follow-up for /{invocation.name}: {e}")

    async def _handle_upload(self, invocation: CommandInvocation) -> str:
        attachment = self._resolve_attachment(invocation)
        if attachment is None:
            return "❌ No attachment supplied."

        filename = attachment.get("filename", "upload.bin")
        logger.info(f"Processing upload from Discord: {filename}")

        try:
            response = await self.backend.open_url(attachment["url"])
        except BackendError as e:
            logger.error(f"Failed to fetch attachment {filename}: {e}")
            return "❌ Failed to fetch file."

        try:
            file = await self.pipeline.put(filename, response.content, origin="Bot")
        except (asyncio.TimeoutError, aiohttp.ClientError) as e:
            logger.error(f"Attachment stream for {filename} broke: {e!r}")
            return "❌ Failed to fetch file."
        except DuplicateFileError:
            return f"❌ A file named `{filename}` already exists."
        except BackendError as e:
            logger.error(f"Storage failed for {filename}: {e}")
            return "❌ Could not save to storage channel."
        except VaultException as e:
            logger.error(f"Upload of {filename} failed: {e}")
            return "❌ Database error."
        finally:
            response.release()

        logger.info(f"Success! Saved {filename} (ID: {file.id})")
        return f"✅ Object secured. ID: **#{file.id}**"

    async def _handle_delete(self, invocation: CommandInvocation) -> str:
        try:
            file_id = int(invocation.options.get("id"))
        except (TypeError, ValueError):
            return "❌ A numeric file ID is required."

        logger.info(f"Manual purge requested for ID: {file_id}")
        try:
            report = await self.pipeline.delete(file_id)
        except NotFoundError:
            return f"❌ File #{file_id} not found."
        except VaultException as e:
            logger.error(f"Purge of {file_id} failed: {e}")
            return "❌ Registry purge failed."

        if report.failed_remote_ids:
            return f"🧹 Purge complete ({len(report.failed_remote_ids)} remote fragment(s) could not be removed)."
        return "🧹 Purge complete."

    @staticmethod
    def _resolve_attachment(invocation: CommandInvocation) -> Optional[Dict[str, Any]]:
        attachment_id = invocation.options.get("file")
        if attachment_id is None:
            return None
        return invocation.attachments.get(str(attachment_id))
