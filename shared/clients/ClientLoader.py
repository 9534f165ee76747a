"""Resolves engine names from the environment to concrete client classes.

Engines live at shared/clients/{type}/{engine}/{Type}Client{Engine}.py, e.g.
shared/clients/rag/qdrant/RAGClientQdrant.py for RAG_ENGINE=qdrant.
"""

from shared.helper.HelperConfig import HelperConfig

_CLASS_PREFIX = {"dms": "DMSClient", "embed": "EmbedClient", "llm": "LLMClient", "rag": "RAGClient"}


def instantiate_client(helper_config: HelperConfig, client_type: str, engine: str):
    """Import and instantiate the client for the given type and engine.

    Args:
        helper_config (HelperConfig): Passed on to the client constructor.
        client_type (str): One of "dms", "embed", "llm", "rag".
        engine (str): Engine name in any case, e.g. "Qdrant" or "qdrant".

    Raises:
        ValueError: If the client type or engine is unsupported.
    """
    client_type = client_type.strip().lower()
    if client_type not in _CLASS_PREFIX:
        raise ValueError(f"Unsupported client type '{client_type}'.")
    engine = engine.strip().lower().capitalize()
    class_name = f"{_CLASS_PREFIX[client_type]}{engine}"
    try:
        module = __import__(f"shared.clients.{client_type}.{engine.lower()}.{class_name}", fromlist=[class_name])
        client_class = getattr(module, class_name)
    except (ImportError, AttributeError) as e:
        raise ValueError(f"Unsupported {client_type.upper()} engine specified: '{engine}'. Error: {e}")
    helper_config.get_logger().debug("Instantiated %s client for engine: %s", client_type.upper(), engine)
    return client_class(helper_config=helper_config)
