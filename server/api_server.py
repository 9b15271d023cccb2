"""FastAPI application entry point for persona_ai_bridge."""

import os
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from shared.logging.logging_setup import setup_logging
from shared.helper.HelperConfig import HelperConfig
from shared.clients.ClientInterface import ClientInterface
from shared.clients.ClientManager import ClientManager
from shared.errors import AppError
from services.answering.AnswerService import AnswerService
from services.billing.BillingService import BillingService
from services.ingestion.Embedder import Embedder
from services.ingestion.IngestionService import IngestionService
from services.ingestion.TextExtractor import TextExtractor
from services.oauth.OAuthService import OAuthService
from services.projects.ProjectService import ProjectService
from services.quota.QuotaLedger import QuotaLedger
from services.users.UserService import UserService
from server.routers.AskRouter import router as ask_router
from server.routers.BillingRouter import router as billing_router
from server.routers.ContentRouter import router as content_router
from server.routers.OAuthRouter import router as oauth_router
from server.routers.ProjectRouter import router as project_router
from server.routers.UserRouter import router as user_router

logging = setup_logging()
app_version = os.getenv("APP_VERSION", "unknown")

CLIENT_TYPES = ("docstore", "rag", "embed", "llm", "auth", "payment")
# without these nothing can be stored or answered
CRITICAL_CLIENT_TYPES = ("docstore", "rag", "embed", "llm")


def build_services(state: Any, helper_config: HelperConfig, clients: dict[str, ClientInterface]) -> None:
    """Wire every service onto ``state`` (``app.state`` or any attribute holder).

    Args:
        state: Target object, usually ``app.state``.
        helper_config (HelperConfig): Shared configuration.
        clients (dict[str, ClientInterface]): Booted clients keyed by client type.
    """
    docstore = clients["docstore"]
    rag_client = clients["rag"]

    quota_ledger = QuotaLedger(helper_config=helper_config, docstore=docstore)
    project_service = ProjectService(
        helper_config=helper_config,
        docstore=docstore,
        rag_client=rag_client,
        quota_ledger=quota_ledger,
    )
    embedder = Embedder(helper_config=helper_config, embed_client=clients["embed"])
    user_service = UserService(helper_config=helper_config, docstore=docstore, quota_ledger=quota_ledger)

    state.helper_config = helper_config
    state.auth_client = clients["auth"]
    state.quota_ledger = quota_ledger
    state.project_service = project_service
    state.user_service = user_service
    state.ingestion_service = IngestionService(
        helper_config=helper_config,
        docstore=docstore,
        rag_client=rag_client,
        embedder=embedder,
        extractor=TextExtractor(helper_config=helper_config),
        quota_ledger=quota_ledger,
        project_service=project_service,
    )
    state.answer_service = AnswerService(
        helper_config=helper_config,
        docstore=docstore,
        rag_client=rag_client,
        embedder=embedder,
        llm_client=clients["llm"],
        project_service=project_service,
    )
    state.billing_service = BillingService(
        helper_config=helper_config,
        payment_client=clients["payment"],
        user_service=user_service,
    )
    state.oauth_service = OAuthService(helper_config=helper_config, docstore=docstore, auth_client=clients["auth"])


async def check_connections(clients: dict[str, ClientInterface]) -> None:
    """Check connectivity to all configured backends on startup.

    Auth and payment failures are non-fatal (the affected endpoints fail later).
    Document store, vector store, embedding and chat failures are fatal.

    Raises:
        Exception: If a critical service is not reachable.
    """
    for client_type, client in clients.items():
        if await client.do_healthcheck():
            continue
        if client_type in CRITICAL_CLIENT_TYPES:
            raise Exception(f"{client_type} client '{client.__class__.__name__}' is not reachable. Cannot serve requests.")
        logging.warning("%s client '%s' is not reachable. Related endpoints may fail.", client_type, client.__class__.__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # when the app starts
    app.state.logging = logging
    helper_config = HelperConfig(logger=logging)

    clients = {
        client_type: ClientManager(helper_config=helper_config, client_type=client_type).get_client()
        for client_type in CLIENT_TYPES
    }

    logging.info("Booting all clients...")
    for client in clients.values():
        await client.boot()
    logging.info("All clients booted successfully.")

    await check_connections(clients)
    await clients["rag"].prepare(*clients["embed"].get_vector_params())

    app.state.clients = clients
    build_services(app.state, helper_config, clients)

    # while the app is running...
    yield

    # when the app shuts down, close all client connections
    logging.info("Shutting down, closing all clients...")
    for client in clients.values():
        await client.close()
    logging.info("All clients closed.")


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logging.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"{field}: {first.get('msg', 'invalid')}" if field else first.get("msg", "Invalid request.")
    return JSONResponse(status_code=400, content={"error": message, "code": "validation_error"})


def create_app(max_body_bytes: int | None = None, use_lifespan: bool = True) -> FastAPI:
    """Build the FastAPI application.

    Args:
        max_body_bytes (int | None): Request body cap, defaults to ``MAX_BODY_BYTES``.
        use_lifespan (bool): Boot clients on startup. Disabled when ``app.state`` is wired by hand.

    Returns:
        FastAPI: The configured application.
    """
    if max_body_bytes is None:
        max_body_bytes = int(os.getenv("MAX_BODY_BYTES") or 52428800)

    app = FastAPI(
        title="persona_ai_bridge",
        description=(
            "Personal-assistant backend. Users store conversations and files as retrievable "
            "context, organised in a profile and projects with per-scope character quotas, "
            "and ask a grounded assistant that answers in their voice."
        ),
        version=app_version,
        lifespan=lifespan if use_lifespan else None,
    )

    @app.middleware("http")
    async def limit_body_size(request: Request, call_next):
        length = request.headers.get("content-length")
        if length and length.isdigit() and int(length) > max_body_bytes:
            return JSONResponse(
                status_code=413,
                content={"error": f"Request body exceeds {max_body_bytes} bytes.", "code": "payload_too_large"},
            )
        return await call_next(request)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    app.include_router(user_router)
    app.include_router(ask_router)
    app.include_router(content_router)
    app.include_router(project_router)
    app.include_router(billing_router)
    app.include_router(oauth_router)

    @app.get("/health", tags=["health"])
    async def health() -> dict:
        return {"status": "ok", "version": app_version}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    logging.info(
        "Starting persona_ai_bridge API Server v%s from root dir: %s on port 8000...",
        app_version,
        os.environ.get("ROOT_DIR", "unknown"),
    )
    uvicorn.run(app, host="0.0.0.0", port=8000)
