"""Discord HTTP interactions endpoint for the slash-command front-end."""

import json

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey
from fastapi import APIRouter, BackgroundTasks, HTTPException, Request, status

from common.logging_config import get_logger
from vault.commands import (
    INTERACTION_APPLICATION_COMMAND,
    INTERACTION_PING,
    RESPONSE_PONG,
    CommandInvocation,
)
from vault.service_locator import get_config, get_dispatcher

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["Interactions"])


def verify_signature(public_key_hex: str, signature_hex: str, timestamp: str, body: bytes) -> bool:
    """
    Check an interaction's Ed25519 signature over timestamp + body.

    Args:
        public_key_hex: Application public key (hex)
        signature_hex: X-Signature-Ed25519 header value
        timestamp: X-Signature-Timestamp header value
        body: Raw request body

    Returns:
        True if the signature is valid
    """
    try:
        public_key = Ed25519PublicKey.from_public_bytes(bytes.fromhex(public_key_hex))
        public_key.verify(bytes.fromhex(signature_hex), timestamp.encode("utf-8") + body)
        return True
    except (InvalidSignature, ValueError):
        return False


@router.post("/interactions")
async def handle_interaction(request: Request, background_tasks: BackgroundTasks):
    """
    Receive a signed interaction and answer it.

    Raises:
        - 401: Missing or invalid signature
        - 404: Interactions are not configured
        - 400: Unsupported interaction type
    """
    config = get_config()
    dispatcher = get_dispatcher()
    if config is None or not config.public_key or dispatcher is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Interactions are not enabled")

    body = await request.body()
    signature = request.headers.get("X-Signature-Ed25519", "")
    timestamp = request.headers.get("X-Signature-Timestamp", "")
    if not verify_signature(config.public_key, signature, timestamp, body):
        logger.warning("Rejected interaction with invalid signature")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid request signature")

    try:
        payload = json.loads(body)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Malformed interaction body")

    interaction_type = payload.get("type")
    if interaction_type == INTERACTION_PING:
        return {"type": RESPONSE_PONG}
    if interaction_type != INTERACTION_APPLICATION_COMMAND:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unsupported interaction type {interaction_type}"
        )

    invocation = CommandInvocation.from_interaction(payload)
    reply = await dispatcher.dispatch(invocation)
    if reply.follow_up:
        background_tasks.add_task(dispatcher.run_follow_up, invocation)

    return reply.to_response()
