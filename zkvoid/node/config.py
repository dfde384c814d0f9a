"""
zkvoid Pool Configuration
"""

from __future__ import annotations
import json
import logging
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import List, Optional

from zkvoid.constants import (
    CHAIN_ID_MAINNET,
    CHAIN_ID_SEPOLIA,
    DENOMINATION_WEI,
    HASHER_KECCAK,
    HASHER_POSEIDON,
    MERKLE_MAX_HEIGHT,
    MERKLE_TREE_HEIGHT,
    NOTE_DENOMINATION,
    PROVER_TIMEOUT_SEC,
    ROOT_HISTORY_SIZE,
    SNARKJS_BINARY,
    VERIFIER_TIMEOUT_SEC,
)
from zkvoid.errors import ConfigError

logger = logging.getLogger(__name__)


@dataclass
class TreeConfig:
    """Accumulator configuration."""
    height: int = MERKLE_TREE_HEIGHT
    root_history_size: int = ROOT_HISTORY_SIZE
    hasher: str = HASHER_POSEIDON


@dataclass
class NoteConfig:
    """Note / denomination configuration."""
    chain_id: int = CHAIN_ID_MAINNET
    denomination: str = NOTE_DENOMINATION
    denomination_wei: int = DENOMINATION_WEI


@dataclass
class ProverConfig:
    """Proving backend configuration."""
    backend: str = "snarkjs"
    binary: str = SNARKJS_BINARY
    verification_key: Optional[str] = None
    proving_key: Optional[str] = None
    circuit_wasm: Optional[str] = None
    prove_timeout_sec: int = PROVER_TIMEOUT_SEC
    verify_timeout_sec: int = VERIFIER_TIMEOUT_SEC


@dataclass
class StorageConfig:
    """Indexer storage configuration."""
    data_dir: str = "./data"
    db_name: str = "zkvoid_indexer.db"
    enabled: bool = True


@dataclass
class LogConfig:
    """Logging configuration."""
    level: str = "INFO"
    file: Optional[str] = None
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    max_size_mb: int = 100
    backup_count: int = 5


@dataclass
class MixerConfig:
    """
    Complete pool configuration.

    All settings for running a pool and its indexer.
    """
    name: str = "zkvoid-pool"
    testnet: bool = False

    tree: TreeConfig = field(default_factory=TreeConfig)
    note: NoteConfig = field(default_factory=NoteConfig)
    prover: ProverConfig = field(default_factory=ProverConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    log: LogConfig = field(default_factory=LogConfig)

    @property
    def data_path(self) -> Path:
        return Path(self.storage.data_dir)

    @property
    def db_path(self) -> Path:
        return self.data_path / self.storage.db_name

    def validate(self) -> List[str]:
        """
        Validate configuration.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        # Tree
        if not 1 <= self.tree.height <= MERKLE_MAX_HEIGHT:
            errors.append(f"Invalid tree height: {self.tree.height}")
        if self.tree.root_history_size < 1:
            errors.append("root_history_size must be at least 1")
        if self.tree.hasher not in (HASHER_POSEIDON, HASHER_KECCAK):
            errors.append(f"Unknown hasher: {self.tree.hasher}")

        # Note
        if self.note.chain_id < 0:
            errors.append(f"Invalid chain id: {self.note.chain_id}")
        if self.note.denomination_wei <= 0:
            errors.append("denomination_wei must be positive")

        # Prover
        if self.prover.backend != "snarkjs":
            errors.append(f"Unknown proving backend: {self.prover.backend}")
        if self.prover.prove_timeout_sec < 1 or self.prover.verify_timeout_sec < 1:
            errors.append("Prover timeouts must be at least 1 second")

        # Storage
        if self.storage.enabled and not self.storage.data_dir:
            errors.append("data_dir cannot be empty")

        # Log
        if getattr(logging, self.log.level.upper(), None) is None:
            errors.append(f"Invalid log level: {self.log.level}")

        return errors

    def check(self) -> None:
        """
        Raise if invalid.

        Raises:
            ConfigError: With every validation error
        """
        errors = self.validate()
        if errors:
            raise ConfigError(errors)

    def save(self, path: str) -> None:
        """Save configuration to file."""
        config_dict = {
            "name": self.name,
            "testnet": self.testnet,
            "tree": asdict(self.tree),
            "note": asdict(self.note),
            "prover": asdict(self.prover),
            "storage": asdict(self.storage),
            "log": asdict(self.log),
        }

        with open(path, 'w') as f:
            json.dump(config_dict, f, indent=2)

        logger.info(f"Configuration saved to {path}")

    @classmethod
    def load(cls, path: str) -> "MixerConfig":
        """Load configuration from file."""
        with open(path, 'r') as f:
            data = json.load(f)

        config = cls(
            name=data.get("name", "zkvoid-pool"),
            testnet=data.get("testnet", False),
        )

        if "tree" in data:
            config.tree = TreeConfig(**data["tree"])

        if "note" in data:
            config.note = NoteConfig(**data["note"])

        if "prover" in data:
            config.prover = ProverConfig(**data["prover"])

        if "storage" in data:
            config.storage = StorageConfig(**data["storage"])

        if "log" in data:
            config.log = LogConfig(**data["log"])

        logger.info(f"Configuration loaded from {path}")
        return config

    @classmethod
    def default_testnet(cls) -> "MixerConfig":
        """Create default testnet configuration."""
        config = cls(
            name="zkvoid-testnet-pool",
            testnet=True,
        )
        config.note.chain_id = CHAIN_ID_SEPOLIA
        config.storage.data_dir = "./data-testnet"
        return config

    @classmethod
    def default_mainnet(cls) -> "MixerConfig":
        """Create default mainnet configuration."""
        return cls(
            name="zkvoid-mainnet-pool",
            testnet=False,
        )

    def to_dict(self) -> dict:
        """Export configuration as dictionary."""
        return {
            "name": self.name,
            "testnet": self.testnet,
            "chain_id": self.note.chain_id,
            "tree": asdict(self.tree),
            "note": asdict(self.note),
            "prover": asdict(self.prover),
            "storage": asdict(self.storage),
            "log": asdict(self.log),
        }


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


def get_config_info() -> dict:
    """Get information about configuration options."""
    return {
        "default_tree_height": MERKLE_TREE_HEIGHT,
        "default_root_history": ROOT_HISTORY_SIZE,
        "default_hasher": HASHER_POSEIDON,
        "config_format": "JSON",
    }
