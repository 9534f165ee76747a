"""Sync runner entry point.

Indexes every Logseq page into the vector store. Pages whose watermark is
current are skipped, so repeated runs only embed what changed.

Usage:
    python -m services.dms_rag_sync.dms_rag_sync
"""

import asyncio
import sys

from services.dms_rag_sync.SyncService import SyncService
from shared.clients.ClientInterface import ClientInterface
from shared.clients.dms.DMSClientManager import DMSClientManager
from shared.clients.embed.EmbedClientManager import EmbedClientManager
from shared.clients.rag.RAGClientManager import RAGClientManager
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import setup_logging
from shared.models.errors import BridgeError


async def boot_clients(clients: list[ClientInterface]) -> None:
    """Boot each client and probe its backend. The first unreachable backend aborts."""
    for client in clients:
        await client.boot()
        response = await client.do_healthcheck()
        if not response.is_success:
            raise BridgeError(
                f"{client.get_client_type().upper()} backend '{client.get_engine_name()}' "
                f"failed its healthcheck with status {response.status_code}."
            )


async def main() -> int:
    """Run the full synchronisation pipeline.

    Returns:
        int: Process exit code.
    """
    logger = setup_logging()
    config = HelperConfig(logger=logger)
    dms_client = DMSClientManager(helper_config=config).get_client()
    embed_client = EmbedClientManager(helper_config=config).get_client()
    rag_client = RAGClientManager(helper_config=config).get_client()
    clients: list[ClientInterface] = [embed_client, dms_client, rag_client]

    try:
        await boot_clients(clients)
        sync_service = SyncService(
            helper_config=config,
            dms_client=dms_client,
            rag_client=rag_client,
            embed_client=embed_client,
        )
        await sync_service.do_ensure_index()
        result = await sync_service.do_full_sync()
        logger.info(
            "Full sync finished: %d page(s), %d re-indexed, %d fragment(s) written.",
            len(result.documents), len(result.reindexed), result.fragment_count,
            color="green",
        )
        return 0
    except BridgeError as e:
        logger.error("Full sync failed: %s", e)
        return 1
    finally:
        for client in clients:
            await client.close()


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
