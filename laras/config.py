from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    SOUNDS_DIR: str = "sounds"

    SAMPLE_RATE: int = 44100
    BLOCK_SIZE: int = 512

    # seconds between a transport pulse and the instant its triggers sound
    LOOKAHEAD: float = 0.05

    LOG_LEVEL: str = "WARNING"

    model_config = SettingsConfigDict(env_prefix="LARAS_", env_file=".env", extra="ignore")


settings = Settings()
