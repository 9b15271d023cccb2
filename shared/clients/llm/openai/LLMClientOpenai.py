from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.errors import UpstreamError
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class LLMClientOpenai(LLMClientInterface):
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

    def _get_endpoint_chat(self) -> str:
        return "/chat/completions"

    ################ PAYLOAD BUILDER ##################
    def get_chat_payload(self, messages: list[dict]) -> dict:
        return {"model": self.chat_model, "messages": messages, "temperature": self.chat_temperature}

    ##########################################
    ################# OTHER ##################
    ##########################################

    def extract_chat_response(self, response_data: dict) -> str:
        """Extract the assistant reply from an OpenAI /chat/completions response.

        Args:
            response_data (dict): {"choices": [{"message": {"content": "..."}}]}

        Returns:
            str: The assistant reply text.

        Raises:
            UpstreamError: If the response does not contain a valid message.
        """
        choices = response_data.get("choices") or []
        content = choices[0].get("message", {}).get("content") if choices else None
        if content is None:
            raise UpstreamError(f"OpenAI chat response does not contain a valid message. Response keys: {list(response_data.keys())}")
        return content
