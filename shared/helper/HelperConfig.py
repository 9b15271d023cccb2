"""Central configuration helper for the persona AI bridge."""

import logging
import os

from dotenv import load_dotenv


class HelperConfig:
    """Reads every setting from environment variables.

    A ``.env`` file in ``ROOT_DIR`` (or the working directory) is loaded once on
    construction; variables already present in the process environment win.
    Keys are case-insensitive and an empty value counts as unset.
    """

    def __init__(self, logger: logging.Logger, env_file: str | None = None) -> None:
        self._logger = logger
        root_dir = os.getenv("ROOT_DIR") or os.getcwd()
        env_path = env_file or os.path.join(root_dir, ".env")
        if os.path.isfile(env_path):
            load_dotenv(env_path, override=False)

    @staticmethod
    def _raw(key: str) -> str | None:
        return os.getenv(key.upper()) or None

    @staticmethod
    def _missing(key: str) -> ValueError:
        return ValueError(f"Environment variable '{key.upper()}' is not set.")

    def get_string_val(self, key: str, default: str | None = None) -> str:
        """
        Raises:
            ValueError: If the variable is not set and no default is provided.
        """
        val = self._raw(key)
        if val is None:
            if default is None:
                raise self._missing(key)
            return default
        return val.strip()

    def get_number_val(self, key: str, default: float | int | None = None) -> float | int:
        """Integer unless the value contains a dot.

        Raises:
            ValueError: If the variable is missing without default, or not numeric.
        """
        raw = self._raw(key)
        if raw is None:
            if default is None:
                raise self._missing(key)
            return default
        try:
            return float(raw) if "." in raw else int(raw)
        except ValueError:
            raise ValueError(f"Environment variable '{key.upper()}' is not a valid number: '{raw}'.")

    def get_int_val(self, key: str, default: int | None = None) -> int:
        """Read an integer environment variable (quota limits, sizes, counts).

        Raises:
            ValueError: If the variable is missing without default, or is not integral.
        """
        val = self.get_number_val(key, default=default)
        if isinstance(val, float) and not val.is_integer():
            raise ValueError(f"Environment variable '{key.upper()}' must be an integer: '{val}'.")
        return int(val)

    def get_bool_val(self, key: str, default: bool | None = None) -> bool:
        """``true``, ``1`` and ``yes`` are True, anything else is False."""
        raw = self._raw(key)
        if raw is None:
            if default is None:
                raise self._missing(key)
            return default
        return raw.lower() in ("true", "1", "yes")

    def get_list_val(self, key: str, default: list[str] | None = None, separator: str = ",", element_type: type = str) -> list:
        """Read a bracketed list such as ``OAUTH_ALLOWED_REDIRECT_URIS=[https://a/cb,https://b/cb]``.

        Args:
            key (str): Environment variable name.
            default (list[str] | None): Fallback value; None makes the variable required.
            separator (str): The delimiter between elements.
            element_type (type): Each element is cast to this type.

        Raises:
            ValueError: If the variable is missing without default, is not
                bracketed, or an element cannot be cast.
        """
        raw_val = self._raw(key)
        if raw_val is None:
            if default is None:
                raise self._missing(key)
            return default
        raw_val = raw_val.strip()
        if not (raw_val.startswith("[") and raw_val.endswith("]")):
            raise ValueError(f"Environment variable '{key.upper()}' must look like '[elem1{separator}elem2]'. Got: '{raw_val}'")
        elements = [v.strip() for v in raw_val[1:-1].split(separator) if v.strip()]
        try:
            return [element_type(elem) for elem in elements]
        except ValueError as e:
            raise ValueError(f"Environment variable '{key.upper()}' contains an element that is not {element_type.__name__}: {e}")

    def get_logger(self) -> logging.Logger:
        return self._logger
