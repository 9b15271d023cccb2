from abc import ABC, abstractmethod
from typing import Any

import httpx
from httpx._types import QueryParamTypes, RequestContent, RequestData, RequestFiles

from shared.errors import UpstreamError
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class ClientInterface(ABC):
    """Base of every external backend client (document store, vector store, models, auth, payment).

    A client is constructed from env config, validated eagerly, and owns one
    ``httpx.AsyncClient`` between ``boot()`` and ``close()``. Engine config keys
    are namespaced as ``{TYPE}_{ENGINE}_{KEY}``, the request timeout as
    ``{TYPE}_TIMEOUT``.
    """

    def __init__(self, helper_config: HelperConfig):
        self.logging = helper_config.get_logger()
        self._helper_config = helper_config
        self.timeout = helper_config.get_number_val(f"{self.get_client_type().upper()}_TIMEOUT", default=30.0)
        self._client: httpx.AsyncClient | None = None
        self.validate_full_configuration()

    ##########################################
    ############### CHECKER ##################
    ##########################################

    def validate_full_configuration(self) -> None:
        """
        Raises:
            ValueError: If a required engine key is missing or malformed.
        """
        for config in self._get_required_config():
            self.get_config_val(raw_key=config.env_key, default=config.default, val_type=config.val_type)

    def is_booted(self) -> bool:
        return self._client is not None

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def get_client_type(self) -> str:
        """Lowercase client type, e.g. "docstore"."""
        return self._get_client_type().lower()

    @abstractmethod
    def _get_client_type(self) -> str:
        pass

    def get_engine_name(self) -> str:
        """Lowercase engine name, e.g. "firestore"."""
        return self._get_engine_name().lower()

    @abstractmethod
    def _get_engine_name(self) -> str:
        pass

    ################ CONFIG ##################
    @abstractmethod
    def _get_required_config(self) -> list[EnvConfig]:
        """Engine keys checked on construction (raw, without the type/engine prefix)."""
        pass

    def _get_config_key_name(self, raw_key: str) -> str:
        return f"{self.get_client_type().upper()}_{self.get_engine_name().upper()}_{raw_key.upper()}"

    def get_config_val(self, raw_key: str, default: Any = None, val_type: str = "string") -> Any:
        """
        Reads one engine key, e.g. ``get_config_val("API_KEY")`` on the OpenAI
        embed client reads ``EMBED_OPENAI_API_KEY``.

        Args:
            raw_key (str): Key without prefix.
            default (Any): Fallback; None makes the key required.
            val_type (str): "string", "number", "bool" or "list".

        Raises:
            ValueError: If the key is required but unset, or ``val_type`` is unknown.
        """
        key = self._get_config_key_name(raw_key)
        readers = {
            "string": self._helper_config.get_string_val,
            "number": self._helper_config.get_number_val,
            "bool": self._helper_config.get_bool_val,
            "list": self._helper_config.get_list_val,
        }
        if val_type not in readers:
            raise ValueError(f"Unsupported config value type '{val_type}' for {key}.")
        return readers[val_type](key, default=default)

    ################ AUTH ##################
    @abstractmethod
    def _get_auth_header(self) -> dict:
        """Headers sent with every request, empty when the backend needs none."""
        pass

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_base_url(self) -> str:
        pass

    @abstractmethod
    def _get_endpoint_healthcheck(self) -> str:
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_healthcheck(self) -> bool:
        """True if the healthcheck endpoint answers with a 2xx status."""
        try:
            response = await self.do_request(method="GET", endpoint=self._get_endpoint_healthcheck())
        except UpstreamError:
            return False
        return response.is_success

    ##########################################
    ############ CORE REQUESTS ###############
    ##########################################

    async def boot(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        """Open the HTTP client. Tests pass an ``httpx.MockTransport``."""
        self._client = httpx.AsyncClient(timeout=self.timeout, transport=transport)

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def do_request(
        self,
        method: str = "GET",
        content: RequestContent | None = None,
        data: RequestData | None = None,
        files: RequestFiles | None = None,
        json: dict | list | None = None,
        params: QueryParamTypes | None = None,
        endpoint: str = "",
        additional_headers: dict | None = None,
        raise_on_error: bool = False,
    ) -> httpx.Response:
        """Send one request to the backend.

        At most one of ``content``, ``data``, ``files`` and ``json`` is sent as body.

        Args:
            method: HTTP method.
            endpoint: Path appended to the base URL.
            additional_headers: Merged over the auth header.
            raise_on_error: Raise on a status >= 300 instead of returning the response.

        Raises:
            UpstreamError: If the client is not booted, the transport fails, or
                (with raise_on_error) the backend answers with a non-2xx status.
        """
        if self._client is None:
            raise UpstreamError(f"{self.get_client_type().upper()} client '{self.get_engine_name()}' not initialised. Call boot() first.")

        endpoint = endpoint.strip()
        url = self._get_base_url().rstrip("/") + ("/" + endpoint.lstrip("/") if endpoint else "")
        headers = {**self._get_auth_header(), **(additional_headers or {})}

        body: dict[str, Any] = {}
        for name, value in (("content", content), ("data", data), ("files", files), ("json", json)):
            if value is not None:
                body[name] = value
                break

        try:
            response = await self._client.request(method, url, headers=headers, params=params, timeout=self.timeout, **body)
        except httpx.HTTPError as exc:
            self.logging.error("%s %s failed: %s", method, url, exc)
            raise UpstreamError(f"{self.get_engine_name()} request failed: {exc.__class__.__name__}") from exc

        if raise_on_error and response.status_code >= 300:
            self.logging.error("%s %s answered %d: %s", method, url, response.status_code, response.text[:500])
            raise UpstreamError(f"{self.get_engine_name()} request failed with status {response.status_code}")
        return response

    async def do_request_json(self, method: str, endpoint: str, **kwargs) -> Any:
        """``do_request`` with ``raise_on_error`` that returns the decoded JSON body.

        Raises:
            UpstreamError: On any non-2xx status or a body that is not JSON.
        """
        response = await self.do_request(method=method, endpoint=endpoint, raise_on_error=True, **kwargs)
        try:
            return response.json()
        except ValueError as exc:
            self.logging.error("%s %s returned a non-JSON body", method, endpoint)
            raise UpstreamError(f"{self.get_engine_name()} returned an unreadable response.") from exc
