from abc import abstractmethod

from typing import Tuple
from shared.clients.ClientInterface import ClientInterface
from shared.errors import UpstreamError
from shared.helper.HelperConfig import HelperConfig


class EmbedClientInterface(ClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

        # pinned model, used for ingestion and for queries alike
        self.embed_model = helper_config.get_string_val(f"{self.get_client_type().upper()}_MODEL", default="text-embedding-3-small")
        self.embed_vector_size = helper_config.get_int_val(f"{self.get_client_type().upper()}_VECTOR_SIZE", default=1536)
        self.embed_distance = helper_config.get_string_val(f"{self.get_client_type().upper()}_DISTANCE", default="Cosine")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "embed"

    def get_vector_params(self) -> Tuple[int, str]:
        """
        Returns the vector dimension and distance metric of the pinned embedding model.

        Returns:
            Tuple[int, str]: E.g. (1536, "Cosine")
        """
        return self.embed_vector_size, self.embed_distance

    ################ ENDPOINTS ##################
    @abstractmethod
    def get_endpoint_embedding(self) -> str:
        """
        Returns the endpoint path for embedding requests.

        Returns:
            str: The endpoint path for embedding requests (e.g. "/embeddings")
        """
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_embed_payload(self, texts: list[str]) -> dict:
        """Build the backend-specific request body for an embedding request.

        Args:
            texts (list[str]): The texts to embed.

        Returns:
            dict: JSON-serialisable request body (e.g. {"model": "...", "input": [...]}).
        """
        pass

    ##########################################
    ################# OTHER ##################
    ##########################################

    @abstractmethod
    def extract_embeddings_from_response(self, response_data: dict) -> list[list[float]]:
        """Extract embedding vectors from a raw embedding API response.

        Args:
            response_data (dict): The parsed JSON response body.

        Returns:
            list[list[float]]: Embedding vectors in the same order as the input texts.

        Raises:
            UpstreamError: If the response format is invalid or embeddings are empty.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_embed(self, texts: list[str] | str) -> list[list[float]]:
        """Send an embedding request and return the extracted vectors.

        Args:
            texts (list[str] | str): One or more texts to embed.

        Returns:
            list[list[float]]: Embedding vectors in the same order as the inputs.

        Raises:
            UpstreamError: If the request fails or the backend returns a
                different number of vectors than texts were sent.
        """
        texts = [texts] if isinstance(texts, str) else texts
        if not texts:
            return []
        body = self.get_embed_payload(texts)
        vectors = self.extract_embeddings_from_response(await self.do_request_json("POST", self.get_endpoint_embedding(), json=body))
        if len(vectors) != len(texts):
            self.logging.error("Embedding backend returned %d vectors for %d texts", len(vectors), len(texts))
            raise UpstreamError("Embedding backend returned an unexpected number of vectors.")
        return vectors
