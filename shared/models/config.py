from pydantic import BaseModel


class EnvConfig(BaseModel):
    """
    A single configuration parameter a client needs from the environment.

    Attributes:
        env_key (str): The raw key; the client prefixes it, e.g. "BASE_URL" -> "RAG_QDRANT_BASE_URL".
        val_type (str): "string", "number", "bool" or "list".
        default (str | int | bool | list | None): Fallback value. None marks the key as required.
    """

    env_key: str
    val_type: str
    default: str | int | bool | list | None = None
