"""Settings of the meta-transaction signer.

Values are loaded, in order of precedence, from:
    1. Keyword arguments given to `load_settings`
    2. Environment variables prefixed with `META_TX_`
    3. `config.yml` in the working directory if found, else `.env`
    4. Default values
"""

import logging
from pathlib import Path
from typing import Any, Literal, Optional

from meta_tx.deployment import (
    BASE_ACCOUNT_ADDRESS,
    PROXY_ACCOUNT_DEPLOYER_ADDRESS,
    RELAY_HUB_ADDRESS,
    ChainID,
)
from meta_tx.domain.models import Address
from meta_tx.errors import ConfigLoaderError
from pydantic import Field, HttpUrl, SecretStr, ValidationError
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

_logger = logging.getLogger(__name__)

LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class MetaTxSettings(BaseSettings):
    """Configuration of the forwarders and the replay protection authorities."""

    model_config = SettingsConfigDict(
        env_prefix="META_TX_",
        env_file=".env",
        yaml_file="config.yml",
        extra="ignore",
        frozen=True,
    )

    chain_id: int = Field(
        default=int(ChainID.MAINNET),
        description="Chain the meta-transactions are signed for.",
    )
    rpc_url: Optional[HttpUrl] = Field(
        default=None,
        description="JSON-RPC endpoint used to read the replay protection state.",
    )
    signer_private_key: Optional[SecretStr] = Field(
        default=None,
        description="Hex encoded private key of the local signer.",
    )
    queue_count: int = Field(
        default=30,
        ge=1,
        description="Number of multi-nonce queues.",
    )
    bit_flip_start_index: int = Field(
        default=0,
        ge=0,
        description="First bit-flip word index.",
    )
    relay_hub_address: Address = Field(default=RELAY_HUB_ADDRESS)
    proxy_account_deployer_address: Address = Field(
        default=PROXY_ACCOUNT_DEPLOYER_ADDRESS
    )
    base_account_address: Address = Field(default=BASE_ACCOUNT_ADDRESS)
    delegate_deployer_address: Optional[Address] = Field(
        default=None,
        description="Deployer used to lower deploy calls.",
    )
    log_level: Literal["debug", "info", "warn", "warning", "error"] = Field(
        default="error",
        description="The minimum level of logs to display.",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Use the YAML file when it exists, the .env file otherwise."""
        yaml_file = settings_cls.model_config.get("yaml_file")
        if yaml_file and Path(str(yaml_file)).is_file():
            return (
                init_settings,
                env_settings,
                YamlConfigSettingsSource(settings_cls),
            )
        return (init_settings, env_settings, dotenv_settings)


def load_settings(**overrides: Any) -> MetaTxSettings:
    """Load and validate the settings.

    Raises:
        ConfigLoaderError: If the settings are invalid.

    """
    try:
        return MetaTxSettings(**overrides)
    except ValidationError as e:
        _logger.error(f"Invalid meta-transaction settings: {e}")
        raise ConfigLoaderError(f"Invalid meta-transaction settings: {e}") from e


def configure_logging(settings: MetaTxSettings) -> None:
    """Apply the settings log level to the package loggers."""
    level = LOG_LEVELS[settings.log_level]
    logging.basicConfig(
        level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    logging.getLogger("meta_tx").setLevel(level)
