"""
Confidential Bank Configuration

Genesis configuration (bank_fhe.json) and runtime ledger settings.
"""

import json
import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from confidential_bank.backends import BACKENDS
from confidential_bank.errors import ConfigError
from confidential_bank.holders import TokenId

logger = logging.getLogger(__name__)

ENV_BACKEND = "CONFIDENTIAL_BANK_BACKEND"
ENV_PRIVATE_KEY = "CONFIDENTIAL_BANK_PRIVATE_KEY"
ENV_LOG_LEVEL = "CONFIDENTIAL_BANK_LOG_LEVEL"


def _is_hex(value, length: Optional[int] = None) -> bool:
    try:
        raw = bytes.fromhex(value)
    except (TypeError, ValueError):
        return False
    return length is None or len(raw) == length


# -----------------------------------------------------------------------------
# Genesis
# -----------------------------------------------------------------------------

@dataclass
class TokenConfig:
    """A token created at genesis under a predetermined id."""
    token_name: str
    token_id: str
    address_and_balances: List[Tuple[str, str]] = field(default_factory=list)
    authorized_minters: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "TokenConfig":
        return cls(
            token_name=data["token_name"],
            token_id=data["token_id"],
            address_and_balances=[tuple(pair) for pair in data.get("address_and_balances", [])],
            authorized_minters=list(data.get("authorized_minters", [])),
        )

    def to_dict(self) -> dict:
        return {
            "token_name": self.token_name,
            "token_id": self.token_id,
            "address_and_balances": [list(pair) for pair in self.address_and_balances],
            "authorized_minters": list(self.authorized_minters),
        }

    def __str__(self):
        return (
            f"TokenConfig {{ token_name: {self.token_name}, token_id: {self.token_id}, "
            f"holders: {len(self.address_and_balances)}, "
            f"authorized_minters: [{', '.join(self.authorized_minters)}] }}"
        )


@dataclass
class BankConfig:
    """
    Genesis configuration.

    Key bytes are hex in JSON; tokens may be empty.
    """
    fhe_public_key: bytes
    fhe_server_key: bytes
    tokens: List[TokenConfig] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "BankConfig":
        try:
            return cls(
                fhe_public_key=bytes.fromhex(data["fhe_public_key"]),
                fhe_server_key=bytes.fromhex(data["fhe_server_key"]),
                tokens=[TokenConfig.from_dict(t) for t in data.get("tokens", [])],
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigError(f"Invalid genesis configuration: {e}") from e

    def to_dict(self) -> dict:
        return {
            "tokens": [t.to_dict() for t in self.tokens],
            "fhe_public_key": self.fhe_public_key.hex(),
            "fhe_server_key": self.fhe_server_key.hex(),
        }

    def validate(self) -> List[str]:
        """
        Validate configuration.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        if not self.fhe_public_key:
            errors.append("fhe_public_key cannot be empty")
        if not self.fhe_server_key:
            errors.append("fhe_server_key cannot be empty")

        seen = set()
        for token in self.tokens:
            try:
                token_id = TokenId(token.token_id)
            except ValueError:
                errors.append(f"Invalid token id: {token.token_id}")
                continue
            if token_id in seen:
                errors.append(f"Duplicate genesis token id: {token.token_id}")
            seen.add(token_id)

            for address, balance in token.address_and_balances:
                if not _is_hex(address, 32):
                    errors.append(f"Invalid holder address in {token.token_name}: {address}")
                if not _is_hex(balance):
                    errors.append(f"Balance of {address} in {token.token_name} is not hex")
            for minter in token.authorized_minters:
                if not _is_hex(minter, 32):
                    errors.append(f"Invalid minter address in {token.token_name}: {minter}")

        return errors

    def save(self, path) -> None:
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)
        logger.info("Genesis configuration saved to %s", path)

    @classmethod
    def load(cls, path) -> "BankConfig":
        try:
            with open(path, 'r') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise ConfigError(f"Cannot read genesis configuration {path}: {e}") from e
        config = cls.from_dict(data)
        logger.info("Genesis configuration loaded from %s", path)
        return config


# -----------------------------------------------------------------------------
# Runtime settings
# -----------------------------------------------------------------------------

@dataclass
class LogConfig:
    """Logging configuration."""
    level: str = "INFO"
    file: Optional[str] = None
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    max_size_mb: int = 100
    backup_count: int = 5


@dataclass
class LedgerSettings:
    backend: str = "cpu"
    private_key_path: Optional[str] = None
    log: LogConfig = field(default_factory=LogConfig)

    def validate(self) -> List[str]:
        errors = []
        if self.backend not in BACKENDS:
            errors.append(f"Unknown backend: {self.backend}")
        if self.private_key_path and not Path(self.private_key_path).is_file():
            errors.append(f"Private key file not found: {self.private_key_path}")
        if getattr(logging, self.log.level.upper(), None) is None:
            errors.append(f"Invalid log level: {self.log.level}")
        return errors

    def to_dict(self) -> dict:
        return {
            "backend": self.backend,
            "private_key_path": self.private_key_path,
            "log": asdict(self.log),
        }

    @classmethod
    def load(cls, path) -> "LedgerSettings":
        try:
            with open(path, 'r') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise ConfigError(f"Cannot read settings {path}: {e}") from e

        settings = cls(
            backend=data.get("backend", "cpu"),
            private_key_path=data.get("private_key_path"),
        )
        if "log" in data:
            settings.log = LogConfig(**data["log"])

        logger.info("Settings loaded from %s", path)
        return settings

    @classmethod
    def from_env(cls, environ=None) -> "LedgerSettings":
        environ = os.environ if environ is None else environ
        settings = cls(
            backend=environ.get(ENV_BACKEND, "cpu"),
            private_key_path=environ.get(ENV_PRIVATE_KEY),
        )
        if ENV_LOG_LEVEL in environ:
            settings.log.level = environ[ENV_LOG_LEVEL]
        return settings


def setup_logging(config: LogConfig) -> None:
    """Configure logging based on config."""
    level = getattr(logging, config.level.upper(), logging.INFO)

    handlers = [logging.StreamHandler()]

    if config.file:
        from logging.handlers import RotatingFileHandler
        file_handler = RotatingFileHandler(
            config.file,
            maxBytes=config.max_size_mb * 1024 * 1024,
            backupCount=config.backup_count,
        )
        handlers.append(file_handler)

    logging.basicConfig(
        level=level,
        format=config.format,
        handlers=handlers,
    )
