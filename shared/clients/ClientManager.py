from shared.clients.ClientInterface import ClientInterface
from shared.helper.HelperConfig import HelperConfig

# client type -> class name prefix of its engines
_CLASS_PREFIXES: dict[str, str] = {
    "embed": "EmbedClient",
    "llm": "LLMClient",
    "rag": "RAGClient",
    "docstore": "DocStoreClient",
    "auth": "AuthClient",
    "payment": "PaymentClient",
}


class ClientManager:
    """
    Instantiates the engine configured for one client type.

    The engine is read from ``{TYPE}_ENGINE`` (e.g. ``RAG_ENGINE=qdrant``) and
    resolved to ``shared.clients.{type}.{engine}.{Prefix}{Engine}``, e.g.
    ``shared.clients.rag.qdrant.RAGClientQdrant``.
    """

    def __init__(self, helper_config: HelperConfig, client_type: str):
        if client_type not in _CLASS_PREFIXES:
            raise ValueError(f"Unknown client type '{client_type}'.")
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.client_type = client_type
        self.client = self._initialize_client()

    def _get_engine_from_env(self) -> str:
        """
        Reads the engine name from ENV configuration.

        Returns:
            str: Capitalised engine name (e.g. "Qdrant").

        Raises:
            ValueError: If ``{TYPE}_ENGINE`` is not set or empty.
        """
        engine = self.helper_config.get_string_val(f"{self.client_type.upper()}_ENGINE")
        if not engine:
            raise ValueError(f"No {self.client_type} engine specified in configuration ({self.client_type.upper()}_ENGINE).")
        return engine.strip().lower().capitalize()

    def _initialize_client(self) -> ClientInterface:
        """
        Instantiates the client for the configured engine.

        Returns:
            ClientInterface: The instantiated client.

        Raises:
            ValueError: If the engine is unsupported or cannot be imported.
        """
        engine = self._get_engine_from_env()
        class_name = f"{_CLASS_PREFIXES[self.client_type]}{engine}"
        try:
            module = __import__(
                f"shared.clients.{self.client_type}.{engine.lower()}.{class_name}",
                fromlist=[class_name],
            )
            client_class = getattr(module, class_name)
        except (ImportError, AttributeError) as e:
            raise ValueError(f"Unsupported {self.client_type} engine '{engine}'. Error: {e}")
        client = client_class(helper_config=self.helper_config)
        self.logging.debug("Instantiated %s client for engine: %s", self.client_type, engine)
        return client

    def get_client(self) -> ClientInterface:
        """Return the instantiated client."""
        return self.client
