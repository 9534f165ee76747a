"""Generic block tree model, backend-independent.

A block's children are a tagged variant: either the child block inline, or a
lightweight reference holding only the child's id, which has to be resolved
through DMSClientInterface.do_fetch_block() before its subtree can be walked.
"""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field


class BlockReference(BaseModel):
    """A child stored out of tree, known only by its id."""
    kind: Literal["reference"] = "reference"
    id: str


class BlockDetails(BaseModel):
    """A node of text with ordered children."""
    kind: Literal["inline"] = "inline"
    id: str
    content: str = ""
    children: list["BlockChild"] = []


BlockChild = Annotated[Union[BlockDetails, BlockReference], Field(discriminator="kind")]

BlockDetails.model_rebuild()
