from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Ledger / RPC
    RPC_URL: str = "http://127.0.0.1:8545"
    CONTRACT_ADDRESS: str | None = None
    PRIVATE_KEY: str | None = None
    CHAIN_ID: int | None = None  # falls back to eth_chainId when unset

    # Reads
    RETRY_ATTEMPTS: int = 3
    RETRY_DELAY_MS: int = 2000

    # Writes
    GAS_CEILING: int = 500000
    RECEIPT_TIMEOUT: float = 120.0
    ALLOW_RESALE: bool = True

    # Pages
    EXPLORER_TX_URL: str = "https://sepolia-optimism.blockscout.com/tx/"
    FRONTEND_URL: str = "http://localhost:3000"
    CORS_ORIGINS: list[str] = ["*"]

    LOG_LEVEL: str = "INFO"
    STARTUP_CHECKS: bool = True

    # Pydantic v2 config
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="allow"
    )


settings = Settings()
