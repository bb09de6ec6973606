"""Entry point for the vault server."""

import os
import time
import uuid

import uvicorn
from dotenv import load_dotenv

ENV_FILE_LOADED = load_dotenv()

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from common.logging_config import setup_logging
from vault import service_locator
from vault.backend.discord import DiscordBackend
from vault.commands import COMMAND_DEFINITIONS, CommandDispatcher
from vault.config import VAULT_HOST, VAULT_PORT, WEB_DIR, load_config
from vault.database import init_database
from vault.exceptions import (
    VaultException,
    ConfigurationError,
    BackendError,
    AuthenticationError,
    StoreError,
    DuplicateFileError,
    NotFoundError,
    EmptyUploadError,
)
from vault.metadata_store import MetadataStore
from vault.routes.file_routes import router as file_router
from vault.routes.interaction_routes import router as interaction_router
from vault.schemas.common import ErrorResponse
from vault.services.object_pipeline import ObjectPipeline

logger = setup_logging('vault')

app = FastAPI(
    title="Chunk Vault",
    description="Encrypted chunked object storage backed by a Discord channel",
    version="1.0.0"
)

backend = None


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Middleware to log all HTTP requests and responses.
    """
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id

    start_time = time.time()

    logger.info(
        f"Request started: {request.method} {request.url.path} [request_id={request_id}]"
    )

    response = await call_next(request)

    duration = time.time() - start_time

    logger.info(
        f"Request completed: {request.method} {request.url.path} "
        f"status={response.status_code} duration={duration:.3f}s [request_id={request_id}]"
    )

    response.headers["X-Request-ID"] = request_id

    return response


@app.on_event("startup")
async def startup_event():
    """
    Load configuration, initialize the database and wire the pipeline.
    """
    global backend

    logger.info("Vault service starting up...")
    if not ENV_FILE_LOADED:
        logger.info("No .env file found, using process environment only")

    try:
        config = load_config()
    except ConfigurationError as e:
        logger.critical(f"Invalid configuration: {e}")
        raise

    init_database()
    logger.info("Database initialized")

    backend = DiscordBackend(token=config.discord_token, channel_id=config.channel_id)
    await backend.start()

    pipeline = ObjectPipeline(
        store=MetadataStore(),
        backend=backend,
        key=config.encryption_key,
        upload_delay=config.upload_delay,
        missing_chunk_policy=config.missing_chunk_policy,
    )
    dispatcher = CommandDispatcher(pipeline, backend, config.allowed_users)

    service_locator.set_config(config)
    service_locator.set_pipeline(pipeline)
    service_locator.set_dispatcher(dispatcher)

    if config.application_id:
        try:
            await backend.register_commands(config.application_id, COMMAND_DEFINITIONS)
        except BackendError as e:
            logger.error(f"Slash command registration failed: {e}")

    if config.allowed_users:
        logger.info(f"Command access restricted to {len(config.allowed_users)} user(s)")
    logger.info(
        f"Vault ready: channel={config.channel_id} "
        f"missing_chunk_policy={config.missing_chunk_policy.value}"
    )


@app.on_event("shutdown")
async def shutdown_event():
    """
    Cleanup resources on application shutdown.
    """
    logger.info("Vault service shutting down...")

    if backend is not None:
        await backend.close()
        logger.info("Backend session closed")

    service_locator.set_dispatcher(None)
    service_locator.set_pipeline(None)
    service_locator.set_config(None)


def _error_response(request: Request, exc: Exception, status_code: int, code: str) -> JSONResponse:
    request_id = getattr(request.state, 'request_id', 'unknown')
    if status_code >= 500:
        logger.error(
            f"{type(exc).__name__}: {exc} [request_id={request_id}] path={request.url.path}",
            exc_info=True
        )
    else:
        logger.warning(
            f"{type(exc).__name__}: {exc} [request_id={request_id}] path={request.url.path}"
        )
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(detail=str(exc), code=code).model_dump()
    )


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return _error_response(request, exc, status.HTTP_404_NOT_FOUND, "FILE_NOT_FOUND")


@app.exception_handler(DuplicateFileError)
async def duplicate_file_handler(request: Request, exc: DuplicateFileError):
    return _error_response(request, exc, status.HTTP_409_CONFLICT, "FILE_EXISTS")


@app.exception_handler(EmptyUploadError)
async def empty_upload_handler(request: Request, exc: EmptyUploadError):
    return _error_response(request, exc, status.HTTP_400_BAD_REQUEST, "EMPTY_UPLOAD")


@app.exception_handler(BackendError)
async def backend_error_handler(request: Request, exc: BackendError):
    return _error_response(request, exc, status.HTTP_502_BAD_GATEWAY, "BACKEND_ERROR")


@app.exception_handler(AuthenticationError)
async def authentication_error_handler(request: Request, exc: AuthenticationError):
    return _error_response(request, exc, status.HTTP_500_INTERNAL_SERVER_ERROR, "INTEGRITY_ERROR")


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    return _error_response(request, exc, status.HTTP_500_INTERNAL_SERVER_ERROR, "STORE_ERROR")


@app.exception_handler(VaultException)
async def vault_exception_handler(request: Request, exc: VaultException):
    return _error_response(request, exc, status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_ERROR")


app.include_router(file_router)
app.include_router(interaction_router)


@app.get("/health")
async def health_check():
    """
    Health check endpoint.
    Returns 200 if service is alive.
    """
    return {"status": "healthy", "service": "vault"}


if os.path.isdir(WEB_DIR):
    app.mount("/", StaticFiles(directory=WEB_DIR, html=True), name="web")


def main() -> None:
    """
    Start the FastAPI server with uvicorn.
    """
    uvicorn.run(
        "vault.main:app",
        host=VAULT_HOST,
        port=VAULT_PORT
    )


if __name__ == "__main__":
    main()
