"""
Tests for TreeFlattener: pre-order traversal, empty blocks, reference
resolution and the two flattening policies.
"""

import pytest

from services.dms_rag_sync.TreeFlattener import FlattenPolicy, TreeFlattener
from shared.clients.dms.models.Block import BlockDetails, BlockReference


def block(block_id: str, content: str = "", children: list | None = None) -> BlockDetails:
    return BlockDetails(id=block_id, content=content, children=children or [])


@pytest.fixture
def tree() -> list:
    return [
        block("a", "Alpha", [
            block("a1", "  Alpha one  ", [block("a1x", "deep")]),
            block("a2", "   "),
        ]),
        block("b", "", [block("b1", "Beta child")]),
        block("c", "Gamma"),
    ]


class TestPerBlockPolicy:
    @pytest.mark.asyncio
    async def test_preorder_and_trimmed(self, helper_config, dms_client, tree):
        flattener = TreeFlattener(helper_config, dms_client, policy=FlattenPolicy.PER_BLOCK)
        leaves = await flattener.do_flatten(tree)
        assert [(leaf.block_id, leaf.text) for leaf in leaves] == [
            ("a", "Alpha"),
            ("a1", "Alpha one"),
            ("a1x", "deep"),
            ("b1", "Beta child"),
            ("c", "Gamma"),
        ]

    @pytest.mark.asyncio
    async def test_whitespace_only_blocks_produce_no_leaf(self, helper_config, dms_client):
        flattener = TreeFlattener(helper_config, dms_client, policy=FlattenPolicy.PER_BLOCK)
        leaves = await flattener.do_flatten([block("x", " \n\t "), block("y", "")])
        assert leaves == []

    @pytest.mark.asyncio
    async def test_references_are_resolved(self, helper_config, dms_client):
        dms_client.blocks["ref"] = block("ref", "Referenced", [block("ref1", "Nested under reference")])
        flattener = TreeFlattener(helper_config, dms_client, policy=FlattenPolicy.PER_BLOCK)
        leaves = await flattener.do_flatten([
            block("root", "Root", [BlockReference(id="ref"), block("after", "After")]),
        ])
        assert [leaf.block_id for leaf in leaves] == ["root", "ref", "ref1", "after"]
        assert dms_client.block_lookups == ["ref"]

    @pytest.mark.asyncio
    async def test_missing_reference_is_empty_subtree(self, helper_config, dms_client):
        flattener = TreeFlattener(helper_config, dms_client, policy=FlattenPolicy.PER_BLOCK)
        leaves = await flattener.do_flatten([block("root", "Root", [BlockReference(id="gone")]), BlockReference(id="gone2")])
        assert [leaf.block_id for leaf in leaves] == ["root"]

    @pytest.mark.asyncio
    async def test_cycle_is_walked_once(self, helper_config, dms_client):
        dms_client.blocks["loop"] = block("loop", "Loop", [BlockReference(id="loop")])
        flattener = TreeFlattener(helper_config, dms_client, policy=FlattenPolicy.PER_BLOCK)
        leaves = await flattener.do_flatten([BlockReference(id="loop")])
        assert [leaf.block_id for leaf in leaves] == ["loop"]


class TestPerSectionPolicy:
    @pytest.mark.asyncio
    async def test_one_leaf_per_top_level_block(self, helper_config, dms_client, tree):
        flattener = TreeFlattener(helper_config, dms_client, policy=FlattenPolicy.PER_SECTION)
        leaves = await flattener.do_flatten(tree)
        assert [(leaf.block_id, leaf.text) for leaf in leaves] == [
            ("a", "Alpha\nAlpha one\ndeep"),
            ("b", "Beta child"),
            ("c", "Gamma"),
        ]


class TestPolicyConfig:
    def test_default_is_per_block(self, helper_config, dms_client, monkeypatch):
        monkeypatch.delenv("INDEX_FLATTEN_POLICY", raising=False)
        assert TreeFlattener(helper_config, dms_client).policy == FlattenPolicy.PER_BLOCK

    def test_reads_env(self, helper_config, dms_client, monkeypatch):
        monkeypatch.setenv("INDEX_FLATTEN_POLICY", "PER_SECTION")
        assert TreeFlattener(helper_config, dms_client).policy == FlattenPolicy.PER_SECTION

    def test_rejects_unknown_policy(self, helper_config, dms_client, monkeypatch):
        monkeypatch.setenv("INDEX_FLATTEN_POLICY", "per_word")
        with pytest.raises(ValueError):
            TreeFlattener(helper_config, dms_client)
