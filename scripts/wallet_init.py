#!/usr/bin/env python3
"""
Wallet initialization for an Allora worker.

Fills in the wallet name and mnemonic in config.json when they are missing,
then writes the worker's env_file so its container can load the wallet.
Invoked through the generated init.config helper.

Usage:
    python scripts/wallet_init.py [--config ./config.json] <worker-dir>

If MNEMONIC_PHRASE is set in the environment it is used instead of prompting.
"""

import argparse
import getpass
import json
import os
import sys
from pathlib import Path
from typing import Any, Callable, Optional

KEY_NAME_FIELD = 'wallet.addressKeyName'
MNEMONIC_FIELD = 'wallet.addressRestoreMnemonic'

ENV_FILE_NAME = 'env_file'
MNEMONIC_FILE_NAME = 'mnemonic'


def get_field(document: dict, dotted_key: str) -> Optional[Any]:
    """Get a nested field, treating missing, null and empty values as unset."""
    value: Any = document
    for part in dotted_key.split('.'):
        if not isinstance(value, dict) or part not in value:
            return None
        value = value[part]
    if value is None or value == '':
        return None
    return value


def set_field(config_path: Path, dotted_key: str, value: Any) -> dict:
    """Set a single field in a JSON document on disk.

    Reads the whole document, sets the field, writes a temp file next to it
    and renames it over the original. Other fields are left as they were.
    """
    document = json.loads(config_path.read_text(encoding='utf-8'))

    parts = dotted_key.split('.')
    target = document
    for part in parts[:-1]:
        if not isinstance(target.get(part), dict):
            target[part] = {}
        target = target[part]
    target[parts[-1]] = value

    tmp_path = config_path.with_suffix('.json.tmp')
    tmp_path.write_text(json.dumps(document, indent=4) + '\n', encoding='utf-8')
    tmp_path.replace(config_path)
    return document


def write_private_file(path: Path, content: str) -> None:
    """Write a file readable only by its owner."""
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, 'w', encoding='utf-8') as f:
        f.write(content)
    # O_CREAT mode does not apply to files that already exist
    os.chmod(path, 0o600)


def write_worker_env(worker_dir: Path, name: str, mnemonic: str) -> Path:
    """Write the worker's env_file and mnemonic secret file."""
    env_path = worker_dir / ENV_FILE_NAME
    write_private_file(
        env_path,
        f"NAME={name}\nMNEMONIC_PHRASE={mnemonic}\nENV_LOADED=true\n",
    )
    write_private_file(worker_dir / MNEMONIC_FILE_NAME, mnemonic + '\n')
    return env_path


def init_wallet(
    worker_dir: Optional[Path],
    config_path: Path,
    prompt: Optional[Callable[[str], str]] = None,
    secret_prompt: Optional[Callable[[str], str]] = None,
    mnemonic: Optional[str] = None,
) -> dict:
    """Make sure config.json carries wallet credentials for `worker_dir`.

    Args:
        worker_dir: Worker data directory receiving env_file
        config_path: Path to config.json
        prompt: Reads a visible answer from the operator
        secret_prompt: Reads a hidden answer from the operator
        mnemonic: Mnemonic collected earlier; skips the mnemonic prompt

    Returns:
        dict with keys: name, env_file, mnemonic_source

    Raises:
        ValueError: If the worker directory is missing or an answer is empty
        FileNotFoundError: If config.json does not exist
    """
    prompt = prompt or input
    secret_prompt = secret_prompt or getpass.getpass

    if not worker_dir:
        raise ValueError("Worker directory not specified.")
    if not config_path.is_file():
        raise FileNotFoundError("config.json file not found. Please provide one.")

    document = json.loads(config_path.read_text(encoding='utf-8'))

    node_name = get_field(document, KEY_NAME_FIELD)
    if node_name is None:
        node_name = prompt("Enter your preferred wallet name: ").strip()
        if not node_name:
            raise ValueError("Wallet name cannot be empty.")
        document = set_field(config_path, KEY_NAME_FIELD, node_name)

    existing = get_field(document, MNEMONIC_FIELD)
    if existing is not None:
        print("Wallet mnemonic already provided.")
        if mnemonic and mnemonic != existing:
            print(
                f"Note: reusing wallet '{node_name}' from {config_path.name}; "
                "the mnemonic entered for this worker was not used.",
                file=sys.stderr,
            )
        env_path = write_worker_env(worker_dir, node_name, existing)
        return {'name': node_name, 'env_file': env_path, 'mnemonic_source': 'config'}

    source = 'environment'
    if not mnemonic:
        source = 'prompt'
        mnemonic = secret_prompt("Enter your mnemonic phrase: ").strip()
        if not mnemonic:
            raise ValueError("Mnemonic phrase cannot be empty.")

    set_field(config_path, MNEMONIC_FIELD, mnemonic)
    env_path = write_worker_env(worker_dir, node_name, mnemonic)

    print("Configuration initialized successfully.")
    return {'name': node_name, 'env_file': env_path, 'mnemonic_source': source}


def main() -> None:
    parser = argparse.ArgumentParser(description='Initialize Allora worker wallet configuration')
    parser.add_argument('worker_dir', nargs='?', type=Path,
                        help='Worker data directory (e.g., worker-data-1)')
    parser.add_argument('--config', type=Path, default=Path('config.json'),
                        help='Path to config.json')
    args = parser.parse_args()

    try:
        init_wallet(
            args.worker_dir,
            args.config,
            mnemonic=os.environ.get('MNEMONIC_PHRASE') or None,
        )
    except (ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except (EOFError, KeyboardInterrupt):
        print(file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
