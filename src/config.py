"""
Application Configuration Module.

Loads settings from the environment (and an optional .env file) using Pydantic
and builds the process-wide logger every other module logs through.

Features:
- Environment variable loading and validation
- Logging setup (directory, level, console output in development)
- Decoder limits for the stdin driver
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from logger import LogManager


class Settings(BaseSettings):
    """
    Application configuration settings with validation.

    Attributes:
        app_name (str): Name of the application, used as logger name
        dev (bool): Development mode flag, enables console logging
        log_dir (str): Directory for log files
        log_level (int): Logging level (default: debug)
        max_buffer_size (int): Limit for buffered incomplete JSON, in bytes
        read_chunk_size (int): Bytes read from stdin per chunk by the driver
    """

    # Application settings
    app_name: str = Field(default="JsonStream", description="Application name")
    dev: bool = Field(default=False, description="Development mode")
    log_dir: str = Field(default="logs", description="Logging directory")

    # Optional configuration with defaults
    log_level: int = Field(default=10, description="Logging level, default debug")

    # Decoder settings
    max_buffer_size: int = Field(
        default=2 * 1024 * 1024,
        gt=0,
        description="Maximum size of buffered incomplete JSON in bytes",
    )
    read_chunk_size: int = Field(
        default=4096, gt=0, description="Chunk size used when reading stdin"
    )

    # Configure env file loading
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra fields in .env file
    )


# Create global settings instance
settings = Settings()

# Initialize logging configuration
logger = LogManager(
    app_name=settings.app_name.lower(),
    log_dir=settings.log_dir,
    development=settings.dev,
    level=settings.log_level,
).logger
