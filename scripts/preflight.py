"""
Docker wrappers used by the worker setup.

All commands run synchronously; a failure raises RuntimeError with the
command's stderr so the caller can abort.
"""

import shutil
import subprocess
from pathlib import Path


def command_exists(name: str) -> bool:
    """Check if an executable is on PATH."""
    return shutil.which(name) is not None


def run_docker(*args, check: bool = True) -> subprocess.CompletedProcess:
    """Run a docker command and capture its output."""
    cmd = ['docker'] + list(args)
    result = subprocess.run(cmd, capture_output=True, text=True)
    if check and result.returncode != 0:
        raise RuntimeError(f"Docker command failed: {' '.join(cmd)}: {result.stderr.strip()}")
    return result


def find_compose_command() -> list[str] | None:
    """Return the compose invocation available on this host.

    Prefers the `docker compose` plugin and falls back to the standalone
    docker-compose binary.
    """
    result = run_docker('compose', 'version', check=False)
    if result.returncode == 0:
        return ['docker', 'compose']
    if command_exists('docker-compose'):
        return ['docker-compose']
    return None


def check_dependencies() -> list[str]:
    """Verify required tools are installed and return the compose command.

    Raises:
        RuntimeError: If docker or docker compose is missing
    """
    if not command_exists('docker'):
        raise RuntimeError("docker is not installed. Please install it and retry.")

    compose_cmd = find_compose_command()
    if compose_cmd is None:
        raise RuntimeError("docker compose is not installed. Please install it and retry.")
    return compose_cmd


def network_exists(name: str) -> bool:
    result = run_docker('network', 'ls', '--format', '{{.Name}}')
    return name in result.stdout.split()


def ensure_network(name: str) -> bool:
    """Create the shared Docker network unless it already exists.

    Returns:
        True if the network was created
    """
    if network_exists(name):
        return False

    result = run_docker('network', 'create', name, check=False)
    if result.returncode != 0:
        raise RuntimeError(f"Failed to create Docker network {name}: {result.stderr.strip()}")
    return True


def compose_up(compose_cmd: list[str], project_dir: Path, compose_file: str) -> None:
    """Bring the stack up in the background."""
    cmd = compose_cmd + ['-f', compose_file, 'up', '-d']
    result = subprocess.run(cmd, cwd=project_dir, capture_output=True, text=True)
    if result.returncode != 0:
        raise RuntimeError(f"Failed to start Docker containers: {result.stderr.strip()}")
