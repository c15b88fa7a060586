import os
from typing import Dict, Optional
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

from ref_client.domain.exceptions import ConfigurationError

DEFAULT_STORAGE = "default"
DEFAULT_TIMEOUT = 30.0


class Settings(BaseModel):
    """Runtime settings, read once from the environment (or a ``.env`` file)."""
    model_config = ConfigDict(frozen=True)

    storage_addresses: Dict[str, str] = Field(..., description="Backend base URL per storage name")
    token: Optional[str] = None
    timeout: float = Field(DEFAULT_TIMEOUT, gt=0)
    log_level: str = "INFO"
    repo_storage: str = DEFAULT_STORAGE
    repo_relative_path: Optional[str] = None


def parse_storage_addresses(raw: str) -> Dict[str, str]:
    """
    Parses ``name=url`` pairs separated by commas.

    Raises:
        ConfigurationError: If a pair has no ``=`` or an empty side.
    """
    addresses = {}
    for pair in raw.split(","):
        pair = pair.strip()
        if not pair:
            continue
        name, sep, url = pair.partition("=")
        if not sep or not name.strip() or not url.strip():
            raise ConfigurationError(f"Malformed storage address '{pair}', expected name=url.")
        addresses[name.strip()] = url.strip()
    return addresses


def load_settings(env_file: Optional[str] = None) -> Settings:
    """
    Loads settings from environment variables, after reading ``env_file`` (or ``.env``).

    Raises:
        ConfigurationError: If GIT_BACKEND_ADDRESS is missing or a value is malformed.
    """
    load_dotenv(env_file)

    backend_address = os.getenv("GIT_BACKEND_ADDRESS")
    if not backend_address:
        raise ConfigurationError("GIT_BACKEND_ADDRESS is not set in the environment.")

    addresses = {DEFAULT_STORAGE: backend_address}
    addresses.update(parse_storage_addresses(os.getenv("GIT_STORAGE_ADDRESSES", "")))

    raw_timeout = os.getenv("GIT_BACKEND_TIMEOUT", str(DEFAULT_TIMEOUT))
    try:
        timeout = float(raw_timeout)
    except ValueError:
        raise ConfigurationError(f"GIT_BACKEND_TIMEOUT must be a number, got '{raw_timeout}'.") from None
    if timeout <= 0:
        raise ConfigurationError(f"GIT_BACKEND_TIMEOUT must be positive, got '{raw_timeout}'.")

    return Settings(
        storage_addresses=addresses,
        token=os.getenv("GIT_BACKEND_TOKEN") or None,
        timeout=timeout,
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        repo_storage=os.getenv("REPO_STORAGE", DEFAULT_STORAGE),
        repo_relative_path=os.getenv("REPO_RELATIVE_PATH") or None,
    )
