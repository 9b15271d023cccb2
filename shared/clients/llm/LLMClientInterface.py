from abc import abstractmethod

from shared.clients.ClientInterface import ClientInterface
from shared.helper.HelperConfig import HelperConfig


class LLMClientInterface(ClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

        # chat / completion config
        self.chat_model = helper_config.get_string_val(f"{self.get_client_type().upper()}_CHAT_MODEL", default="gpt-4o-mini")
        self.chat_temperature = helper_config.get_number_val(f"{self.get_client_type().upper()}_TEMPERATURE", default=0.7)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "llm"

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_chat(self) -> str:
        """
        Returns the endpoint path for chat requests (e.g. "/chat/completions").
        """
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_chat_payload(self, messages: list[dict]) -> dict:
        """Build the backend-specific request body for a chat request.

        Args:
            messages (list[dict]): OpenAI-format messages.

        Returns:
            dict: JSON-serialisable request body.
        """
        pass

    ##########################################
    ################# OTHER ##################
    ##########################################

    @abstractmethod
    def extract_chat_response(self, response_data: dict) -> str:
        """Extract the assistant reply text from a raw chat response.

        Raises:
            UpstreamError: If the response does not contain a valid reply.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_chat(self, messages: list[dict]) -> str:
        """Send a chat/completion request and return the assistant reply text.

        Args:
            messages (list[dict]): OpenAI-format messages
                (e.g. [{"role": "system", "content": "..."}, {"role": "user", "content": "..."}]).

        Returns:
            str: The assistant reply text.

        Raises:
            UpstreamError: If the HTTP request fails or the reply is malformed.
        """
        body = self.get_chat_payload(messages)
        return self.extract_chat_response(await self.do_request_json("POST", self._get_endpoint_chat(), json=body))
