"""Runtime settings loaded from environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict

CACHE_TTL_SECONDS_DEFAULT = 300.0
REQUEST_TIMEOUT_SECONDS_DEFAULT = 10.0
CACHE_MAX_ENTRIES_DEFAULT = 1024
ROOT_ADDRESS_DEFAULT = "0x1"

NETWORK_FULLNODE_URLS = {
    "mainnet": "https://api.mainnet.aptoslabs.com/v1",
    "testnet": "https://api.testnet.aptoslabs.com/v1",
    "devnet": "https://api.devnet.aptoslabs.com/v1",
    "local": "http://127.0.0.1:8080/v1",
}


class KeylessSettings(BaseSettings):
    """Network, cache and logging settings for keyless verification."""

    model_config = SettingsConfigDict(env_prefix="KEYLESS_")

    network: str = "mainnet"
    fullnode_url: str = ""
    root_address: str = ROOT_ADDRESS_DEFAULT
    cache_ttl_seconds: float = CACHE_TTL_SECONDS_DEFAULT
    cache_max_entries: int = CACHE_MAX_ENTRIES_DEFAULT
    request_timeout_seconds: float = REQUEST_TIMEOUT_SECONDS_DEFAULT
    log_level: str = "INFO"

    def get_fullnode_url(self) -> str:
        """Resolve the fullnode REST endpoint for the configured network."""
        if self.fullnode_url:
            return self.fullnode_url.rstrip("/")
        try:
            return NETWORK_FULLNODE_URLS[self.network]
        except KeyError:
            msg = f"No fullnode URL known for network {self.network!r}"
            raise ValueError(msg) from None
