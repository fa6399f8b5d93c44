"""
Compose manifest generation for worker stacks.

A project directory holds a single docker-compose.yaml shared by every
worker set up in it. Each run merges its worker service into the existing
manifest instead of overwriting it, so earlier workers keep running.
"""

from pathlib import Path

from ruamel.yaml import YAML
from ruamel.yaml.comments import CommentedMap

from models import INFERENCE_SERVICE, SetupSettings


def log_rotation() -> dict:
    return {
        'driver': 'json-file',
        'options': {'max-size': '10m', 'max-file': '3'},
    }


# python:*-slim images ship without curl
HEALTHCHECK_CMD = (
    "import urllib.request; "
    "urllib.request.urlopen('http://localhost:8000/health', timeout=5)"
)


def worker_dir_name(index: str) -> str:
    return f'worker-data-{index}'


def worker_service_name(index: str) -> str:
    return f'custom-worker-{index}'


def mnemonic_secret_name(index: str) -> str:
    return f'mnemonic_secret_{index}'


def inference_service(settings: SetupSettings) -> dict:
    """Generate the sample inference service definition."""
    return {
        INFERENCE_SERVICE: {
            'build': './inference',
            'image': INFERENCE_SERVICE,
            'container_name': INFERENCE_SERVICE,
            'env_file': '.env',
            'ports': [f'{settings.inference_port}:8000'],
            'networks': [settings.network],
            'healthcheck': {
                'test': ['CMD', 'python', '-c', HEALTHCHECK_CMD],
                'interval': '30s',
                'timeout': '10s',
                'retries': 3,
            },
            'logging': log_rotation(),
            'restart': 'unless-stopped',
        }
    }


def worker_service(index: str, settings: SetupSettings) -> dict:
    """Generate the service definition for worker `index`.

    Secrets stay out of the manifest: the mnemonic comes from the worker's
    env_file and secret file, the API key and RPC are interpolated from .env.
    """
    data_dir = worker_dir_name(index)
    name = worker_service_name(index)

    return {
        name: {
            'image': settings.worker_image,
            'container_name': name,
            'volumes': [f'./{data_dir}:/data'],
            'networks': [settings.network],
            'depends_on': {
                INFERENCE_SERVICE: {'condition': 'service_healthy'},
            },
            'env_file': [f'./{data_dir}/env_file'],
            'environment': [
                f'NAME=worker-{index}',
                'UPSHOT_APIKEY=${UPSHOT_APIKEY}',
                'RPC=${RPC}',
            ],
            'secrets': [mnemonic_secret_name(index)],
            'logging': log_rotation(),
            'restart': 'unless-stopped',
        }
    }


def load_compose(compose_path: Path) -> tuple[CommentedMap, YAML]:
    """Load the manifest preserving comments, or start an empty one."""
    yaml_parser = YAML()
    yaml_parser.preserve_quotes = True
    yaml_parser.indent(mapping=2, sequence=4, offset=2)

    if not compose_path.exists():
        return CommentedMap(), yaml_parser

    manifest = yaml_parser.load(compose_path.read_text(encoding='utf-8'))
    if manifest is None:
        manifest = CommentedMap()
    if not isinstance(manifest, dict):
        raise ValueError(f"{compose_path.name} is not a compose mapping")
    return manifest, yaml_parser


def save_compose(compose_path: Path, manifest: CommentedMap, yaml_parser: YAML) -> None:
    """Save the manifest atomically."""
    tmp_path = compose_path.with_suffix(compose_path.suffix + '.tmp')
    with tmp_path.open('w', encoding='utf-8') as f:
        yaml_parser.dump(manifest, f)
    tmp_path.replace(compose_path)


def _section(manifest: CommentedMap, key: str) -> dict:
    if manifest.get(key) is None:
        manifest[key] = CommentedMap()
    return manifest[key]


def merge_worker(manifest: CommentedMap, index: str, settings: SetupSettings) -> CommentedMap:
    """Add worker `index` and the shared pieces it needs to a manifest."""
    services = _section(manifest, 'services')
    services.update(inference_service(settings))
    services.update(worker_service(index, settings))

    secrets = _section(manifest, 'secrets')
    secrets[mnemonic_secret_name(index)] = {
        'file': f'./{worker_dir_name(index)}/mnemonic',
    }

    # The network is created ahead of `up`, shared by every worker stack
    networks = _section(manifest, 'networks')
    networks[settings.network] = {'external': True}

    return manifest


def update_compose_manifest(compose_path: Path, index: str, settings: SetupSettings) -> CommentedMap:
    """Merge worker `index` into the manifest at `compose_path`."""
    manifest, yaml_parser = load_compose(compose_path)
    merge_worker(manifest, index, settings)
    save_compose(compose_path, manifest, yaml_parser)
    return manifest
