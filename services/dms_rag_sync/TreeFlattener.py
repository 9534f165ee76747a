"""Flattens a page's block tree into an ordered list of text leaves."""

from enum import Enum
from typing import AsyncIterator

from shared.clients.dms.DMSClientInterface import DMSClientInterface
from shared.clients.dms.models.Block import BlockChild, BlockDetails, BlockReference
from shared.helper.HelperConfig import HelperConfig
from shared.models.fragment import Leaf


class FlattenPolicy(str, Enum):
    """How many leaves a page produces.

    PER_BLOCK:    one leaf per block with non-empty text, tagged with the block's id.
    PER_SECTION:  one leaf per top-level block holding the text of its whole
                  subtree, tagged with the top-level block's id.
    """

    PER_BLOCK = "per_block"
    PER_SECTION = "per_section"


class TreeFlattener:
    """Walks block trees depth-first in pre-order.

    Child references are resolved through the document store before their
    subtree is walked. A reference that cannot be resolved is an empty subtree.
    """

    def __init__(self, helper_config: HelperConfig, dms_client: DMSClientInterface, policy: FlattenPolicy | None = None) -> None:
        self.logging = helper_config.get_logger()
        self._dms_client = dms_client
        if policy is None:
            raw_policy = helper_config.get_string_val("INDEX_FLATTEN_POLICY", default=FlattenPolicy.PER_BLOCK.value)
            try:
                policy = FlattenPolicy(raw_policy.strip().lower())
            except ValueError:
                raise ValueError(
                    f"Unsupported INDEX_FLATTEN_POLICY '{raw_policy}'. "
                    f"Use one of: {', '.join(p.value for p in FlattenPolicy)}."
                )
        self.policy = policy

    async def do_flatten(self, roots: list[BlockChild]) -> list[Leaf]:
        """Flatten the root blocks of one page according to the configured policy.

        Args:
            roots (list[BlockChild]): The page's top-level blocks, inline or referenced.

        Returns:
            list[Leaf]: Leaves in document order, never with empty text.
        """
        seen: set[str] = set()
        leaves: list[Leaf] = []
        for root in roots:
            block = await self._resolve(root, seen)
            if block is None:
                continue
            if self.policy == FlattenPolicy.PER_BLOCK:
                async for block_id, text in self._walk(block, seen):
                    leaves.append(Leaf(block_id=block_id, text=text))
            else:
                texts = [text async for _, text in self._walk(block, seen)]
                if texts:
                    leaves.append(Leaf(block_id=block.id, text="\n".join(texts)))
        return leaves

    async def _resolve(self, child: BlockChild, seen: set[str]) -> BlockDetails | None:
        if child.id in seen:
            self.logging.debug("Block '%s' already visited, skipping.", child.id)
            return None
        if isinstance(child, BlockReference):
            block = await self._dms_client.do_fetch_block(child.id, include_children=True)
            if block is None:
                self.logging.warning("Referenced block '%s' not found, treating it as empty.", child.id)
                return None
            return block
        return child

    async def _walk(self, block: BlockDetails, seen: set[str]) -> AsyncIterator[tuple[str, str]]:
        seen.add(block.id)
        text = block.content.strip()
        if text:
            yield block.id, text
        for child in block.children:
            resolved = await self._resolve(child, seen)
            if resolved is None:
                continue
            async for item in self._walk(resolved, seen):
                yield item
