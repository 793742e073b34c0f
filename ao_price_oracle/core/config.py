"""Environment-driven settings shared by the oracle and its liveness endpoint."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

_MIN_UPDATE_INTERVAL_MS = 1_000


class Settings(BaseSettings):
    """Application settings loaded from environment variables or a local .env file."""

    APP_NAME: str = "AO Price Oracle"
    SERVICE_NAME: str = "lncp-credits payment token price oracle - ao"
    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"
    VERSION: str = "1.0.0"
    HOST: str = "0.0.0.0"
    PORT: int = 3000
    ORACLE_PK: str = ""
    PROCESS_ID: str = ""
    UPDATE_INTERVAL_MS: int = 60_000
    SERIALIZE_CYCLES: bool = False
    HTTP_TIMEOUT_S: float = 15.0
    ARWEAVE_GRAPHQL_URL: str = "https://arweave.net/graphql"
    ARWEAVE_DATA_URL: str = "https://arweave.net"
    DATA_FEED_ID: str = "AO"
    DATA_SERVICE_ID: str = "redstone-primary-prod"
    ORACLE_TYPE: str = "redstone-oracles"
    TRUSTED_OWNER: str = "I-5rWUehEv-MjdK9gFw09RxfSLQX9DIHxG614Wf8qo0"
    AO_MU_URL: str = "https://mu.ao-testnet.xyz"
    AO_CU_URL: str = "https://cu.ao-testnet.xyz"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def update_interval_ms(self) -> int:
        """Return the timer interval, never shorter than one second."""

        return max(_MIN_UPDATE_INTERVAL_MS, self.UPDATE_INTERVAL_MS)

    def process_id(self) -> str:
        return self.PROCESS_ID.strip()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings to avoid repeated environment parsing."""

    return Settings()
