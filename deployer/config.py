"""
Deployment configuration.

Runtime settings come from the environment (a local .env file is loaded
first). Per-network tables (seeded external addresses, pinned component
addresses and literal constructor parameters) are JSON files under
``networks/``.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from deployer.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_NETWORKS_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'networks')


@dataclass
class Settings:
    """Environment-driven settings for one deployment run"""
    rpc_url: str
    private_key: Optional[str]
    network: str
    artifacts_dir: str
    networks_dir: str
    receipt_timeout: int = 300
    gas_limit: Optional[int] = None
    log_file: str = 'deployer.log'

    slack_webhook: Optional[str] = None
    smtp_server: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_username: Optional[str] = None
    smtp_password: Optional[str] = None
    notification_email: Optional[str] = None

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "Settings":
        load_dotenv(dotenv_path)
        try:
            gas_limit = os.getenv("DEPLOYER_GAS_LIMIT")
            return cls(
                rpc_url=os.getenv("DEPLOYER_RPC_URL", "http://localhost:8545"),
                private_key=os.getenv("DEPLOYER_PRIVATE_KEY"),
                network=os.getenv("DEPLOYER_NETWORK", "localhost"),
                artifacts_dir=os.getenv("DEPLOYER_ARTIFACTS_DIR", "artifacts"),
                networks_dir=os.getenv("DEPLOYER_NETWORKS_DIR", DEFAULT_NETWORKS_DIR),
                receipt_timeout=int(os.getenv("DEPLOYER_RECEIPT_TIMEOUT", "300")),
                gas_limit=int(gas_limit) if gas_limit else None,
                log_file=os.getenv("DEPLOYER_LOG_FILE", "deployer.log"),
                slack_webhook=os.getenv("SLACK_WEBHOOK"),
                smtp_server=os.getenv("SMTP_SERVER", "smtp.gmail.com"),
                smtp_port=int(os.getenv("SMTP_PORT", "587")),
                smtp_username=os.getenv("SMTP_USERNAME"),
                smtp_password=os.getenv("SMTP_PASSWORD"),
                notification_email=os.getenv("NOTIFICATION_EMAIL"),
            )
        except ValueError as e:
            raise ConfigError(f"Invalid numeric setting in environment: {e}") from e


@dataclass
class NetworkConfig:
    """
    Per-network constants.

    Attributes:
        network: Name passed to hardhat verify
        chain_id: Expected chain id of the RPC endpoint
        seeds: Addresses of components this repo never deploys (WETH, Uniswap factories...)
        pins: Addresses of components deployed by an earlier run; they are attached, not redeployed
        params: Literal constructor and linking parameters
        pair: Seed names of the base and quote tokens of the initial pair
        pending_links: Linking calls of pinned components left undone by an earlier run
    """
    network: str
    chain_id: Optional[int] = None
    seeds: Dict[str, str] = field(default_factory=dict)
    pins: Dict[str, str] = field(default_factory=dict)
    params: Dict[str, Any] = field(default_factory=dict)
    pair: Dict[str, str] = field(default_factory=dict)
    pending_links: Dict[str, List[str]] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NetworkConfig":
        if 'network' not in data:
            raise ConfigError("Network config is missing 'network'")
        for key in ('seeds', 'pins', 'params', 'pair'):
            if not isinstance(data.get(key, {}), dict):
                raise ConfigError(f"Network config '{key}' must be an object")
        return cls(
            network=data['network'],
            chain_id=data.get('chainId'),
            seeds=dict(data.get('seeds', {})),
            pins=dict(data.get('pins', {})),
            params=dict(data.get('params', {})),
            pair=dict(data.get('pair', {})),
        )

    @classmethod
    def load(cls, path: str) -> "NetworkConfig":
        try:
            with open(path, 'r') as f:
                data = json.load(f)
        except FileNotFoundError as e:
            raise ConfigError(f"Network config not found: {path}") from e
        except json.JSONDecodeError as e:
            raise ConfigError(f"Network config {path} is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Network config {path} must be a JSON object")
        config = cls.from_dict(data)
        logger.info(f"Loaded network config for {config.network} from {path}")
        return config

    @classmethod
    def for_network(cls, network: str, networks_dir: str = DEFAULT_NETWORKS_DIR) -> "NetworkConfig":
        return cls.load(os.path.join(networks_dir, f"{network}.json"))

    def pin_from_record(self, path: str):
        """Pin every component listed in a deployment record written by an earlier run"""
        try:
            with open(path, 'r') as f:
                record = json.load(f)
        except FileNotFoundError as e:
            raise ConfigError(f"Deployment record not found: {path}") from e
        except json.JSONDecodeError as e:
            raise ConfigError(f"Deployment record {path} is not valid JSON: {e}") from e

        contracts = record.get('contracts') if isinstance(record, dict) else None
        if not isinstance(contracts, dict):
            raise ConfigError(f"Deployment record {path} has no 'contracts' object")
        if record.get('network') not in (None, self.network):
            raise ConfigError(f"Deployment record {path} is for {record['network']}, not {self.network}")

        pending = record.get('pendingLinks', {})
        if not isinstance(pending, dict) or not all(isinstance(labels, list) for labels in pending.values()):
            raise ConfigError(f"Deployment record {path} has a malformed 'pendingLinks' object")

        self.pins.update(contracts)
        self.pending_links.update(pending)
        logger.info(f"Pinned {len(contracts)} components from {path}")
        for name, labels in pending.items():
            logger.warning(f"{name} still has pending linking calls: {', '.join(labels)}")

    def param(self, name: str) -> Any:
        if name not in self.params:
            raise ConfigError(f"Parameter '{name}' missing from {self.network} config")
        return self.params[name]

