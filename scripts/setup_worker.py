#!/usr/bin/env python3
"""
Allora Worker Setup

Interactive provisioning for an Allora testnet worker. Prompts for a worker
index, mnemonic and Upshot API key, then generates:
  worker-data-{INDEX}/          per-worker data directory (mode 0700)
  .env                          RPC endpoint and API key (mode 0600)
  docker-compose.yaml           inference service + one service per worker
  inference/                    sample inference service (first run only)
  config.json                   wallet and topic configuration (first run only)
  init.config                   wallet initialization helper

and starts the stack with docker compose.

Usage:
    python scripts/setup_worker.py [--project-dir .] [--settings worker-setup.yaml] [--skip-launch]
"""

import argparse
import getpass
import os
import re
import subprocess
import sys
from pathlib import Path
from typing import Callable, Optional

import yaml
from pydantic import ValidationError
from ruamel.yaml import YAMLError

from compose_manifest import update_compose_manifest, worker_service_name
from models import SetupSettings, load_settings
from preflight import check_dependencies, compose_up, ensure_network
from scaffold import (
    bootstrap_config,
    create_worker_dir,
    scaffold_inference,
    write_env_file,
    write_init_script,
)

INDEX_PATTERN = re.compile(r'^[0-9]+$')

DEFAULT_SETTINGS_FILE = 'worker-setup.yaml'


def validate_worker_index(value: str) -> str:
    """Validate the worker index. Raises ValueError if it is not numeric."""
    value = value.strip()
    if not INDEX_PATTERN.match(value):
        raise ValueError("Worker index must be a numeric value.")
    return value


def require_value(value: str, message: str) -> str:
    if not value or not value.strip():
        raise ValueError(message)
    return value.strip()


def collect_inputs(
    prompt: Optional[Callable[[str], str]] = None,
    secret_prompt: Optional[Callable[[str], str]] = None,
) -> dict:
    """Prompt for worker credentials, validating each answer as it arrives."""
    prompt = prompt or input
    secret_prompt = secret_prompt or getpass.getpass
    index = validate_worker_index(prompt("Enter your worker index (numeric): "))
    mnemonic = require_value(
        secret_prompt("Enter your mnemonic phrase: "),
        "Mnemonic phrase cannot be empty.",
    )
    api_key = require_value(
        prompt("Enter your Upshot API key: "),
        "Upshot API key cannot be empty.",
    )
    return {'index': index, 'mnemonic': mnemonic, 'api_key': api_key}


def run_init_script(init_script: Path, worker_dir: Path, mnemonic: str, project_dir: Path) -> None:
    """Run init.config for a worker.

    The mnemonic already collected is handed over through the environment so
    the helper does not prompt for it again.
    """
    env = dict(os.environ, MNEMONIC_PHRASE=mnemonic)
    result = subprocess.run(
        [str(init_script.resolve()), worker_dir.name],
        cwd=project_dir,
        env=env,
    )
    if result.returncode != 0:
        raise RuntimeError(f"{init_script.name} failed with exit code {result.returncode}")


def setup_worker(
    project_dir: Path,
    settings: SetupSettings,
    prompt: Optional[Callable[[str], str]] = None,
    secret_prompt: Optional[Callable[[str], str]] = None,
    launch: bool = True,
) -> dict:
    """Provision one worker in `project_dir` and optionally start the stack.

    Returns:
        dict with keys: index, worker_dir, service
    """
    compose_cmd = check_dependencies()

    inputs = collect_inputs(prompt, secret_prompt)
    index = inputs['index']

    print("\nCreating worker directory...")
    worker_dir = create_worker_dir(project_dir, index)
    print(f"  Created {worker_dir.name}/")

    if ensure_network(settings.network):
        print(f"  Created Docker network {settings.network}")

    print("\nGenerating configuration files...")
    env_path = write_env_file(project_dir, settings.rpc, inputs['api_key'])
    print(f"  Created {env_path.name}")

    update_compose_manifest(project_dir / settings.compose_file, index, settings)
    print(f"  Added {worker_service_name(index)} to {settings.compose_file}")

    if scaffold_inference(project_dir, settings):
        print("  Created sample inference service in inference/")

    init_script = write_init_script(project_dir)
    print(f"  Created {init_script.name}")

    if bootstrap_config(project_dir, index, settings.rpc):
        print("  Created config.json")
    else:
        print("  config.json already exists. Skipping creation.")

    print("\nInitializing wallet configuration...")
    run_init_script(init_script, worker_dir, inputs['mnemonic'], project_dir)

    if launch:
        print("\nStarting Docker containers...")
        compose_up(compose_cmd, project_dir, settings.compose_file)

    return {
        'index': index,
        'worker_dir': worker_dir,
        'service': worker_service_name(index),
    }


def main() -> None:
    parser = argparse.ArgumentParser(description='Set up an Allora testnet worker')
    parser.add_argument('--project-dir', type=Path, default=Path('.'),
                        help='Directory holding the compose stack (default: current directory)')
    parser.add_argument('--settings', type=Path,
                        help=f'Settings file (default: <project-dir>/{DEFAULT_SETTINGS_FILE})')
    parser.add_argument('--skip-launch', action='store_true',
                        help='Generate files without running docker compose up')
    args = parser.parse_args()

    project_dir = args.project_dir
    settings_file = args.settings or project_dir / DEFAULT_SETTINGS_FILE

    try:
        settings = load_settings(settings_file)
        result = setup_worker(project_dir, settings, launch=not args.skip_launch)
    except ValidationError as e:
        print(f"Error: invalid settings in {settings_file}", file=sys.stderr)
        for error in e.errors():
            loc = ' -> '.join(str(x) for x in error['loc'])
            print(f"  {loc}: {error['msg']}", file=sys.stderr)
        sys.exit(1)
    except (ValueError, RuntimeError, OSError, YAMLError, yaml.YAMLError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except (EOFError, KeyboardInterrupt):
        print(file=sys.stderr)
        sys.exit(1)

    print(f"\n{'='*60}")
    if args.skip_launch:
        print(f"Worker {result['index']} configured.")
        print(f"{'='*60}")
        print("\nNext steps:")
        print(f"  Start the stack with: docker compose -f {settings.compose_file} up -d")
    else:
        print(f"Worker setup complete. Your worker is running with index {result['index']}.")
        print(f"{'='*60}")
        print(f"\n  Logs: docker logs -f {result['service']}")


if __name__ == '__main__':
    main()
