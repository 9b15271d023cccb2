from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.errors import UpstreamError
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class EmbedClientOpenai(EmbedClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default="https://api.openai.com/v1", val_type="string")
        self._api_key = self.get_config_val("API_KEY", default=None, val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Openai"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default="https://api.openai.com/v1"),
            EnvConfig(env_key="API_KEY", val_type="string", default=None),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        return {"Authorization": f"Bearer {self._api_key}"}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/models"

    def get_endpoint_embedding(self) -> str:
        return "/embeddings"

    ################ PAYLOAD BUILDER ##################
    def get_embed_payload(self, texts: list[str]) -> dict:
        return {"model": self.embed_model, "input": texts}

    ##########################################
    ################# OTHER ##################
    ##########################################

    def extract_embeddings_from_response(self, response_data: dict) -> list[list[float]]:
        """Extract embedding vectors from an OpenAI /embeddings response.

        The ``data`` entries carry an ``index`` and are not guaranteed to be
        returned in input order.

        Args:
            response_data (dict): {"data": [{"embedding": [...], "index": 0}, ...]}

        Returns:
            list[list[float]]: Embedding vectors in input order.

        Raises:
            UpstreamError: If the response does not contain valid embeddings.
        """
        data = response_data.get("data")
        if not data:
            raise UpstreamError(f"OpenAI response does not contain embeddings. Response keys: {list(response_data.keys())}")
        ordered = sorted(data, key=lambda entry: entry.get("index", 0))
        vectors = [entry.get("embedding") for entry in ordered]
        if any(not vector for vector in vectors):
            raise UpstreamError("OpenAI response contains an empty embedding.")
        return vectors
