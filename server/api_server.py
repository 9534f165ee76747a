"""FastAPI application entry point for logseq_rag_bridge."""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from server.core.ChatSession import ChatSessionStore
from server.core.RagChatChain import RagChatChain
from server.core.ScopeLocks import ScopeLocks
from server.core.ScopedRetriever import ScopedRetriever
from server.routers.ChatRouter import router as chat_router
from server.routers.DocumentsRouter import router as documents_router
from server.routers.IndexRouter import router as index_router
from services.dms_rag_sync.SyncService import SyncService
from shared.clients.ClientInterface import ClientInterface
from shared.clients.dms.DMSClientManager import DMSClientManager
from shared.clients.embed.EmbedClientManager import EmbedClientManager
from shared.clients.llm.LLMClientManager import LLMClientManager
from shared.clients.rag.RAGClientManager import RAGClientManager
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import setup_logging
from shared.models.errors import (
    BridgeError,
    InputError,
    QuotaError,
    ServiceError,
    ServiceResponseError,
    TransientServiceError,
)

logging = setup_logging()
app_version = os.getenv("APP_VERSION", "unknown")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # when the app starts
    app.state.logging = logging
    app.state.helper_config = HelperConfig(logger=logging)

    dms_client = DMSClientManager(helper_config=app.state.helper_config).get_client()
    embed_client = EmbedClientManager(helper_config=app.state.helper_config).get_client()
    llm_client = LLMClientManager(helper_config=app.state.helper_config).get_client()
    rag_client = RAGClientManager(helper_config=app.state.helper_config).get_client()
    clients: list[ClientInterface] = [dms_client, embed_client, llm_client, rag_client]

    logging.info("Booting all clients...")
    for client in clients:
        await client.boot()
    logging.info("All clients booted successfully.")

    try:
        await check_connections(dms_client, [embed_client, llm_client, rag_client])

        app.state.dms_client = dms_client
        app.state.sync_service = SyncService(
            helper_config=app.state.helper_config,
            dms_client=dms_client,
            rag_client=rag_client,
            embed_client=embed_client,
        )
        await app.state.sync_service.do_ensure_index()

        retriever = ScopedRetriever(
            helper_config=app.state.helper_config,
            embed_client=embed_client,
            rag_client=rag_client,
        )
        app.state.chat_chain = RagChatChain(
            helper_config=app.state.helper_config,
            llm_client=llm_client,
            retriever=retriever,
        )
        app.state.session_store = ChatSessionStore(helper_config=app.state.helper_config)
        app.state.index_locks = ScopeLocks()

        # while the app is running...
        yield
    finally:
        # when the app shuts down, close all client connections
        logging.info("Shutting down, closing all clients...")
        for client in clients:
            await client.close()
        logging.info("All clients closed.")


app = FastAPI(
    title="logseq_rag_bridge",
    description=(
        "Chat with your Logseq pages. POST /index syncs the selected page (and the pages "
        "linking to it) into a vector database and opens a chat session; POST /chat answers "
        "questions against exactly those pages with cited sources."
    ),
    version=app_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(documents_router)
app.include_router(index_router)
app.include_router(chat_router)


##########################################
########### EXCEPTION HANDLERS ###########
##########################################

ERROR_STATUS: dict[type[BridgeError], int] = {
    InputError: 404,
    QuotaError: 429,
    TransientServiceError: 503,
    ServiceResponseError: 502,
    ServiceError: 502,
    BridgeError: 500,
}


async def handle_bridge_error(request: Request, exc: BridgeError) -> JSONResponse:
    status_code = next(code for error_type, code in ERROR_STATUS.items() if isinstance(exc, error_type))
    if status_code >= 500:
        logging.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status_code, content={"detail": str(exc), "error": type(exc).__name__})


for _error_type in ERROR_STATUS:
    app.add_exception_handler(_error_type, handle_bridge_error)


async def check_connections(dms_client: ClientInterface, required_clients: list[ClientInterface]) -> None:
    """Check connectivity to all configured backends on startup.

    A DMS failure is non-fatal (Logseq may be started later, indexing fails until then).
    Embedding, LLM and vector store failures are fatal.

    Raises:
        BridgeError: If a required backend is not reachable.
    """
    result = await dms_client.do_healthcheck()
    if not result.is_success:
        logging.warning(
            "DMS client '%s' is not reachable (status %d). Indexing will fail until it is.",
            dms_client.get_engine_name(),
            result.status_code,
        )

    for client in required_clients:
        result = await client.do_healthcheck()
        if not result.is_success:
            raise BridgeError(
                f"{client.get_client_type().upper()} client '{client.get_engine_name()}' is not reachable "
                f"(status {result.status_code}). Cannot serve queries."
            )


if __name__ == "__main__":
    import uvicorn

    logging.info(
        "Starting logseq_rag_bridge API Server v%s from root dir: %s on port 8000...",
        app_version,
        os.environ.get("ROOT_DIR", "unknown"),
    )
    uvicorn.run(app, host="0.0.0.0", port=8000)
