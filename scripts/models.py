"""
Pydantic models for the files the worker setup reads and writes.

config.json is consumed by the Allora offchain node, so field aliases follow
its camelCase (and PascalCase for worker parameters) naming. worker-setup.yaml
holds optional operator overrides for the generated stack.
"""

from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field

DEFAULT_RPC = 'https://rpc.ankr.com/allora_testnet'
DEFAULT_NETWORK = 'allora_network'
DEFAULT_WORKER_IMAGE = 'alloranetwork/allora-offchain-node:latest'

INFERENCE_SERVICE = 'custom-inference'
INFERENCE_ENTRYPOINT = 'api-worker-reputer'
INFERENCE_ENDPOINT = f'http://{INFERENCE_SERVICE}:8000/inference/{{Token}}'

# (topic_id, loop_seconds, token)
DEFAULT_TOPICS = [
    (1, 1, 'ETH'),
    (2, 3, 'ETH'),
    (3, 5, 'BTC'),
    (4, 2, 'BTC'),
    (5, 4, 'SOL'),
    (6, 5, 'SOL'),
    (7, 2, 'ETH'),
    (8, 3, 'BNB'),
    (9, 5, 'ARB'),
    (10, 5, 'MEME'),
]


class WorkerParameters(BaseModel):
    """Parameters handed to the inference entrypoint."""
    model_config = ConfigDict(populate_by_name=True)

    inference_endpoint: str = Field(INFERENCE_ENDPOINT, alias='InferenceEndpoint')
    token: str = Field(..., min_length=1, alias='Token')


class WorkerEntry(BaseModel):
    """One topic the worker polls and answers."""
    model_config = ConfigDict(populate_by_name=True)

    topic_id: int = Field(..., ge=1, alias='topicId')
    inference_entrypoint_name: str = Field(INFERENCE_ENTRYPOINT, alias='inferenceEntrypointName')
    loop_seconds: int = Field(..., ge=1, alias='loopSeconds')
    parameters: WorkerParameters


class WalletConfig(BaseModel):
    """Wallet section of config.json."""
    model_config = ConfigDict(populate_by_name=True)

    address_key_name: str = Field('', alias='addressKeyName')
    address_restore_mnemonic: str = Field('', alias='addressRestoreMnemonic')
    allora_home_dir: str = Field('', alias='alloraHomeDir')
    gas: str = '1000000'
    gas_adjustment: float = Field(1.0, alias='gasAdjustment')
    node_rpc: str = Field(DEFAULT_RPC, alias='nodeRpc')
    max_retries: int = Field(1, ge=0, alias='maxRetries')
    delay: int = Field(1, ge=0)
    submit_tx: bool = Field(True, alias='submitTx')


class NodeConfig(BaseModel):
    """Root model for config.json."""
    wallet: WalletConfig
    worker: list[WorkerEntry] = Field(default_factory=list)

    def to_json_dict(self) -> dict:
        return self.model_dump(by_alias=True)


class SetupSettings(BaseModel):
    """Operator overrides read from worker-setup.yaml."""
    model_config = ConfigDict(extra='forbid')

    rpc: str = Field(DEFAULT_RPC, min_length=1)
    network: str = Field(DEFAULT_NETWORK, pattern=r'^[a-zA-Z0-9][a-zA-Z0-9_.-]*$')
    worker_image: str = Field(DEFAULT_WORKER_IMAGE, min_length=1)
    inference_port: int = Field(8001, ge=1, le=65535)
    inference_base_image: str = Field('python:3.12-slim', min_length=1)
    compose_file: str = Field('docker-compose.yaml', min_length=1)


def build_default_config(index: str, rpc: str = DEFAULT_RPC) -> NodeConfig:
    """Build the default config.json document for a worker."""
    workers = [
        WorkerEntry(
            topic_id=topic_id,
            loop_seconds=loop_seconds,
            parameters=WorkerParameters(token=token),
        )
        for topic_id, loop_seconds, token in DEFAULT_TOPICS
    ]
    wallet = WalletConfig(address_key_name=f'worker-{index}', node_rpc=rpc)
    return NodeConfig(wallet=wallet, worker=workers)


def load_settings(path: Path) -> SetupSettings:
    """Load worker-setup.yaml, falling back to defaults when it is absent.

    Raises:
        ValueError: If the file is not a YAML mapping
        yaml.YAMLError: If the file is not valid YAML
        pydantic.ValidationError: If a setting is invalid
    """
    if not path.exists():
        return SetupSettings()

    data = yaml.safe_load(path.read_text(encoding='utf-8'))
    if data is None:
        return SetupSettings()
    if not isinstance(data, dict):
        raise ValueError(f"{path.name} must contain a mapping of settings")
    return SetupSettings.model_validate(data)
