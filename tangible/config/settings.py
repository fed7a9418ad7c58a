"""Engine configuration, overridable through TANGIBLE_* environment variables."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # === Shares ===
    SHARE_UNITS: int = 100  # whole units minted by initialize, scaled by decimals
    MAX_SHARE_DECIMALS: int = 18

    # === Fees ===
    TAX_DECIMALS: int = 3  # tax numerators are per-mille: 100 == 10%
    DEFAULT_ROYALTY: int = 10_000_000
    DEFAULT_ISSUE_FEE: int = 100_000_000

    # === Presale ===
    ENFORCE_PRESALE_WINDOW: bool = False

    # === Logging ===
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    model_config = {"env_file": ".env", "env_prefix": "TANGIBLE_"}


settings = Settings()
