"""
Filesystem scaffolding for a worker project directory.

Creates the per-worker data directory, the shared .env, the sample
inference service, the init.config helper and the default config.json.
"""

import json
import os
import sys
from pathlib import Path

from jinja2 import FileSystemLoader, StrictUndefined
from jinja2.sandbox import SandboxedEnvironment

from compose_manifest import worker_dir_name
from models import INFERENCE_SERVICE, SetupSettings, build_default_config
from wallet_init import write_private_file

TEMPLATES_DIR = Path(__file__).parent / 'worker_templates'
SCRIPTS_DIR = Path(__file__).parent

ENV_FILE = '.env'
CONFIG_FILE = 'config.json'
INIT_SCRIPT = 'init.config'
INFERENCE_DIR = 'inference'

# (template, output) pairs for the sample inference service
INFERENCE_TEMPLATES = [
    ('Dockerfile.j2', 'Dockerfile'),
    ('requirements.txt.j2', 'requirements.txt'),
    ('inference_service.py.j2', 'inference_service.py'),
]


def template_env(templates_dir: Path = TEMPLATES_DIR) -> SandboxedEnvironment:
    return SandboxedEnvironment(
        loader=FileSystemLoader(templates_dir),
        keep_trailing_newline=True,
        undefined=StrictUndefined,
    )


def create_worker_dir(project_dir: Path, index: str) -> Path:
    """Create worker-data-<index> readable only by its owner.

    Raises:
        FileExistsError: If the directory already exists
    """
    worker_dir = project_dir / worker_dir_name(index)
    if worker_dir.exists():
        raise FileExistsError(
            f"Directory {worker_dir.name} already exists. "
            "Please choose a different index or remove the existing directory."
        )
    worker_dir.mkdir(mode=0o700)
    # mkdir's mode is filtered through the umask
    os.chmod(worker_dir, 0o700)
    return worker_dir


def write_env_file(project_dir: Path, rpc: str, api_key: str) -> Path:
    """Write the shared .env consumed by compose interpolation."""
    env_path = project_dir / ENV_FILE
    lines = [
        f"RPC={rpc}",
        f"UPSHOT_APIKEY={api_key}",
    ]
    write_private_file(env_path, '\n'.join(lines) + '\n')
    return env_path


def scaffold_inference(
    project_dir: Path,
    settings: SetupSettings,
    templates_dir: Path = TEMPLATES_DIR,
) -> bool:
    """Create the sample inference service unless inference/ already exists.

    Returns:
        True if the skeleton was created
    """
    inference_dir = project_dir / INFERENCE_DIR
    if inference_dir.exists():
        return False

    env = template_env(templates_dir)
    context = {
        'service_name': INFERENCE_SERVICE,
        'base_image': settings.inference_base_image,
    }

    # inference/ is only created once every template has rendered
    rendered = {
        output_name: env.get_template(f'{INFERENCE_DIR}/{template_name}').render(**context)
        for template_name, output_name in INFERENCE_TEMPLATES
    }

    inference_dir.mkdir()
    for output_name, content in rendered.items():
        (inference_dir / output_name).write_text(content, encoding='utf-8')
    return True


def write_init_script(project_dir: Path, templates_dir: Path = TEMPLATES_DIR) -> Path:
    """Write the executable init.config helper."""
    template = template_env(templates_dir).get_template('init.config.j2')
    content = template.render(
        python=sys.executable,
        wallet_init=(SCRIPTS_DIR / 'wallet_init.py').resolve(),
        config_path=(project_dir / CONFIG_FILE).resolve(),
    )

    init_path = project_dir / INIT_SCRIPT
    init_path.write_text(content, encoding='utf-8')
    init_path.chmod(0o755)
    return init_path


def bootstrap_config(project_dir: Path, index: str, rpc: str) -> bool:
    """Write the default config.json unless one already exists.

    Returns:
        True if config.json was created
    """
    config_path = project_dir / CONFIG_FILE
    if config_path.exists():
        return False

    config = build_default_config(index, rpc)
    config_path.write_text(json.dumps(config.to_json_dict(), indent=4) + '\n', encoding='utf-8')
    return True
