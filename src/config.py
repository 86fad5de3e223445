"""
Process configuration for the delivery filter.

Configuration is read once by the entry point and handed to the pipeline as an
immutable ``MdaConfig``; nothing below the entry point reads the environment.

Environment variables:
    MDA_MAILCHANNELS_API_KEY        provider API key (required)
    MDA_MAILCHANNELS_DKIM_SELECTOR  DKIM selector (required)
    MDA_DKIM_KEY_DIR                key directory (default: /etc/mail/dkim)
    MDA_DKIM_KEY_BUCKET             read keys from this S3 bucket instead
    MDA_DKIM_KEY_PREFIX             object key prefix inside the bucket
    MDA_MAILCHANNELS_API_URL        send endpoint override
    MDA_MAILCHANNELS_TIMEOUT        HTTP timeout in seconds (default: none)
    MDA_TRANSACTIONAL               true/false, unset sends null
    MDA_CLICK_TRACKING              true/false
    MDA_OPEN_TRACKING               true/false
    MDA_ENV_FILE                    dotenv file loaded before reading the above
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from domain.errors import ConfigurationError
from domain.models import TrackingSettings
from integrations.mailchannels import DEFAULT_API_URL
from services.dkim import DEFAULT_KEY_DIR, FilesystemKeyStore, KeyStore, S3KeyStore

logger = logging.getLogger(__name__)

_TRUE = ('true', '1', 'yes', 'on')
_FALSE = ('false', '0', 'no', 'off')


@dataclass(frozen=True)
class MdaConfig:
    """
    Immutable settings for one invocation.

    Attributes:
        api_key: Provider API key
        dkim_selector: DKIM selector sent with every request
        dkim_key_dir: Directory holding <domain>.key.pem files
        dkim_key_bucket: S3 bucket holding key files (overrides dkim_key_dir)
        dkim_key_prefix: Object key prefix inside dkim_key_bucket
        api_url: Provider send endpoint
        timeout: HTTP timeout in seconds, None to wait indefinitely
        transactional: Transactional flag, None serializes as null
        click_tracking: Click tracking switch, None for provider default
        open_tracking: Open tracking switch, None for provider default
    """
    api_key: str
    dkim_selector: str
    dkim_key_dir: str = DEFAULT_KEY_DIR
    dkim_key_bucket: Optional[str] = None
    dkim_key_prefix: str = ''
    api_url: str = DEFAULT_API_URL
    timeout: Optional[float] = None
    transactional: Optional[bool] = None
    click_tracking: Optional[bool] = None
    open_tracking: Optional[bool] = None

    def key_store(self) -> KeyStore:
        """Key source selected by this configuration."""
        if self.dkim_key_bucket:
            return S3KeyStore(self.dkim_key_bucket, self.dkim_key_prefix)
        return FilesystemKeyStore(self.dkim_key_dir)

    def tracking_settings(self) -> Optional[TrackingSettings]:
        settings = TrackingSettings(
            click_tracking=self.click_tracking,
            open_tracking=self.open_tracking,
        )
        return settings if settings.is_set else None

    def __repr__(self) -> str:
        return (
            f"MdaConfig(api_url={self.api_url}, dkim_selector={self.dkim_selector}, "
            f"key_store={self.key_store()!r}, api_key=<{len(self.api_key)} chars>)"
        )


def _require(environ: Mapping[str, str], name: str) -> str:
    value = environ.get(name, '').strip()
    if not value:
        raise ConfigurationError(
            f"{name} environment variable is required but not set. "
            f"Set it in the environment or in the file named by MDA_ENV_FILE."
        )
    return value


def _read_bool(environ: Mapping[str, str], name: str) -> Optional[bool]:
    value = environ.get(name, '').strip().lower()
    if not value:
        return None
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ConfigurationError(f"{name} must be true or false, got: {value!r}")


def _read_timeout(environ: Mapping[str, str]) -> Optional[float]:
    value = environ.get('MDA_MAILCHANNELS_TIMEOUT', '').strip()
    if not value:
        return None
    try:
        timeout = float(value)
    except ValueError:
        raise ConfigurationError(f"MDA_MAILCHANNELS_TIMEOUT must be a number, got: {value!r}")
    if timeout <= 0:
        raise ConfigurationError(f"MDA_MAILCHANNELS_TIMEOUT must be positive, got: {value!r}")
    return timeout


def load_config(env_file: Optional[str] = None, environ: Optional[Mapping[str, str]] = None) -> MdaConfig:
    """
    Build the configuration from the process environment.

    Args:
        env_file: Optional dotenv file; defaults to $MDA_ENV_FILE. Values
            already in the environment win over the file.
        environ: Mapping to read instead of os.environ (the env file is not
            loaded in that case)

    Returns:
        MdaConfig

    Raises:
        ConfigurationError: If a required setting is missing or a value is invalid
    """
    if environ is None:
        env_file = env_file or os.environ.get('MDA_ENV_FILE')
        if env_file:
            if not Path(env_file).is_file():
                raise ConfigurationError(f"env file not found: {env_file}")
            load_dotenv(env_file, override=False)
            logger.debug(f"Loaded environment file: {env_file}")
        environ = os.environ

    config = MdaConfig(
        api_key=_require(environ, 'MDA_MAILCHANNELS_API_KEY'),
        dkim_selector=_require(environ, 'MDA_MAILCHANNELS_DKIM_SELECTOR'),
        dkim_key_dir=environ.get('MDA_DKIM_KEY_DIR') or DEFAULT_KEY_DIR,
        dkim_key_bucket=environ.get('MDA_DKIM_KEY_BUCKET') or None,
        dkim_key_prefix=environ.get('MDA_DKIM_KEY_PREFIX', ''),
        api_url=environ.get('MDA_MAILCHANNELS_API_URL') or DEFAULT_API_URL,
        timeout=_read_timeout(environ),
        transactional=_read_bool(environ, 'MDA_TRANSACTIONAL'),
        click_tracking=_read_bool(environ, 'MDA_CLICK_TRACKING'),
        open_tracking=_read_bool(environ, 'MDA_OPEN_TRACKING'),
    )
    logger.debug(f"Configuration loaded: {config!r}")
    return config
