from shared.clients.llm.models.Tool import ToolDefinition

CONTEXTUALIZE_SYSTEM_PROMPT = (
    "Given a chat history and the latest user question which might reference "
    "context in the chat history, formulate a standalone question which can be "
    "understood without the chat history. Do NOT answer the question, just "
    "reformulate it if needed and otherwise return it as is."
)

ANSWER_SYSTEM_PROMPT = """You are an assistant for question-answering tasks on a personal knowledge base.
Answer the user's question using only the numbered page contents below.
If the contents do not contain the answer, just say that you don't know, don't try to make up an answer.
Use three sentences maximum and keep the answer as concise as possible.
After each sentence, append the index of the content it is based on in square brackets, e.g. [0].
Report every index you used in the `citations` list.

{context}"""

CITED_ANSWER_TOOL = ToolDefinition(
    name="cited_answer",
    description="Answer the user question based only on the given contents, and cite the contents used.",
    parameters={
        "type": "object",
        "properties": {
            "answer": {
                "type": "string",
                "description": "The answer to the user question, based only on the given contents.",
            },
            "citations": {
                "type": "array",
                "items": {"type": "integer"},
                "description": "The indices of the contents which justify the answer.",
            },
        },
        "required": ["answer", "citations"],
    },
)
