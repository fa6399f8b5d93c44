"""Tests for wallet_init.py."""

import json
import stat
import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

# Add scripts directory to path for imports
SCRIPTS_DIR = Path(__file__).parent.parent / 'scripts'
sys.path.insert(0, str(SCRIPTS_DIR))

import wallet_init
from wallet_init import get_field, init_wallet, set_field, write_worker_env


def write_config(path: Path, wallet: dict) -> Path:
    path.write_text(json.dumps({'wallet': wallet, 'worker': [{'topicId': 1}]}))
    return path


def mode_of(path: Path) -> int:
    return stat.S_IMODE(path.stat().st_mode)


@pytest.fixture
def worker_dir(tmp_path):
    d = tmp_path / 'worker-data-1'
    d.mkdir()
    return d


class TestGetField:
    """Tests for get_field function."""

    def test_returns_nested_value(self):
        assert get_field({'wallet': {'addressKeyName': 'w1'}}, 'wallet.addressKeyName') == 'w1'

    def test_missing_null_and_empty_are_unset(self):
        """Missing, null and empty string all read as unset."""
        assert get_field({}, 'wallet.addressKeyName') is None
        assert get_field({'wallet': {'addressKeyName': None}}, 'wallet.addressKeyName') is None
        assert get_field({'wallet': {'addressKeyName': ''}}, 'wallet.addressKeyName') is None

    def test_non_mapping_parent(self):
        assert get_field({'wallet': 'oops'}, 'wallet.addressKeyName') is None


class TestSetField:
    """Tests for set_field read-modify-write."""

    def test_sets_field_and_keeps_others(self, tmp_path):
        """Only the targeted field changes."""
        config_path = write_config(tmp_path / 'config.json', {'gas': '1000000', 'custom': 7})

        set_field(config_path, 'wallet.addressKeyName', 'alice')

        data = json.loads(config_path.read_text())
        assert data['wallet'] == {'gas': '1000000', 'custom': 7, 'addressKeyName': 'alice'}
        assert data['worker'] == [{'topicId': 1}]

    def test_creates_missing_parent(self, tmp_path):
        config_path = tmp_path / 'config.json'
        config_path.write_text('{}')

        set_field(config_path, 'wallet.addressRestoreMnemonic', 'seed words')

        assert json.loads(config_path.read_text()) == {
            'wallet': {'addressRestoreMnemonic': 'seed words'},
        }

    def test_leaves_no_temp_file(self, tmp_path):
        config_path = write_config(tmp_path / 'config.json', {})

        set_field(config_path, 'wallet.addressKeyName', 'alice')

        assert sorted(p.name for p in tmp_path.iterdir()) == ['config.json']


class TestWriteWorkerEnv:
    """Tests for write_worker_env function."""

    def test_writes_env_file(self, worker_dir):
        env_path = write_worker_env(worker_dir, 'worker-1', 'seed words')

        assert env_path.read_text() == (
            'NAME=worker-1\nMNEMONIC_PHRASE=seed words\nENV_LOADED=true\n'
        )
        assert (worker_dir / 'mnemonic').read_text() == 'seed words\n'

    def test_files_are_owner_only(self, worker_dir):
        """Secrets are readable only by the owner."""
        env_path = write_worker_env(worker_dir, 'worker-1', 'seed words')

        assert mode_of(env_path) == 0o600
        assert mode_of(worker_dir / 'mnemonic') == 0o600

    def test_tightens_existing_file(self, worker_dir):
        """Rewriting a world-readable file restricts it."""
        env_path = worker_dir / 'env_file'
        env_path.write_text('old')
        env_path.chmod(0o644)

        write_worker_env(worker_dir, 'worker-1', 'seed words')

        assert mode_of(env_path) == 0o600


class TestInitWallet:
    """Tests for init_wallet function."""

    def test_requires_worker_dir(self, tmp_path):
        config_path = write_config(tmp_path / 'config.json', {})

        with pytest.raises(ValueError, match='Worker directory not specified'):
            init_wallet(None, config_path)

    def test_requires_config(self, worker_dir, tmp_path):
        with pytest.raises(FileNotFoundError, match='config.json file not found'):
            init_wallet(worker_dir, tmp_path / 'config.json')

    def test_existing_mnemonic_is_reused(self, worker_dir, tmp_path):
        """No prompts when the wallet is already complete."""
        config_path = write_config(tmp_path / 'config.json', {
            'addressKeyName': 'worker-1',
            'addressRestoreMnemonic': 'stored seed',
        })
        prompt = MagicMock()
        secret_prompt = MagicMock()

        result = init_wallet(worker_dir, config_path, prompt, secret_prompt, mnemonic='other seed')

        prompt.assert_not_called()
        secret_prompt.assert_not_called()
        assert result['mnemonic_source'] == 'config'
        assert 'MNEMONIC_PHRASE=stored seed' in (worker_dir / 'env_file').read_text()

    def test_reused_wallet_is_announced(self, worker_dir, tmp_path, capsys):
        """A different mnemonic for a later worker gets a notice on stderr."""
        config_path = write_config(tmp_path / 'config.json', {
            'addressKeyName': 'worker-1',
            'addressRestoreMnemonic': 'stored seed',
        })

        init_wallet(worker_dir, config_path, mnemonic='other seed')

        err = capsys.readouterr().err
        assert "reusing wallet 'worker-1' from config.json" in err
        assert 'other seed' not in err

    def test_same_mnemonic_has_no_notice(self, worker_dir, tmp_path, capsys):
        config_path = write_config(tmp_path / 'config.json', {
            'addressKeyName': 'worker-1',
            'addressRestoreMnemonic': 'stored seed',
        })

        init_wallet(worker_dir, config_path, mnemonic='stored seed')

        assert capsys.readouterr().err == ''

    def test_prompts_for_missing_name(self, worker_dir, tmp_path):
        """A null wallet name is asked for and patched in."""
        config_path = write_config(tmp_path / 'config.json', {
            'addressKeyName': None,
            'addressRestoreMnemonic': 'stored seed',
        })

        result = init_wallet(worker_dir, config_path, prompt=lambda _: 'alice')

        assert result['name'] == 'alice'
        data = json.loads(config_path.read_text())
        assert data['wallet']['addressKeyName'] == 'alice'
        assert 'NAME=alice' in (worker_dir / 'env_file').read_text()

    def test_empty_name_rejected(self, worker_dir, tmp_path):
        config_path = write_config(tmp_path / 'config.json', {})

        with pytest.raises(ValueError, match='Wallet name cannot be empty'):
            init_wallet(worker_dir, config_path, prompt=lambda _: '  ')

    def test_supplied_mnemonic_skips_prompt(self, worker_dir, tmp_path):
        """A mnemonic collected earlier is written without prompting."""
        config_path = write_config(tmp_path / 'config.json', {
            'addressKeyName': 'worker-1',
            'addressRestoreMnemonic': '',
        })
        secret_prompt = MagicMock()

        result = init_wallet(worker_dir, config_path, secret_prompt=secret_prompt, mnemonic='new seed')

        secret_prompt.assert_not_called()
        assert result['mnemonic_source'] == 'environment'
        data = json.loads(config_path.read_text())
        assert data['wallet']['addressRestoreMnemonic'] == 'new seed'
        assert (worker_dir / 'mnemonic').read_text() == 'new seed\n'

    def test_prompts_for_mnemonic(self, worker_dir, tmp_path):
        config_path = write_config(tmp_path / 'config.json', {'addressKeyName': 'worker-1'})

        result = init_wallet(worker_dir, config_path, secret_prompt=lambda _: 'typed seed')

        assert result['mnemonic_source'] == 'prompt'
        data = json.loads(config_path.read_text())
        assert data['wallet']['addressRestoreMnemonic'] == 'typed seed'

    def test_empty_mnemonic_rejected(self, worker_dir, tmp_path):
        config_path = write_config(tmp_path / 'config.json', {'addressKeyName': 'worker-1'})

        with pytest.raises(ValueError, match='Mnemonic phrase cannot be empty'):
            init_wallet(worker_dir, config_path, secret_prompt=lambda _: '')

        assert not (worker_dir / 'env_file').exists()


class TestMain:
    """Tests for the wallet_init command line."""

    def test_uses_mnemonic_from_environment(self, worker_dir, tmp_path, monkeypatch):
        config_path = write_config(tmp_path / 'config.json', {'addressKeyName': 'worker-1'})
        monkeypatch.setenv('MNEMONIC_PHRASE', 'env seed')
        monkeypatch.setattr(sys, 'argv', ['wallet_init.py', '--config', str(config_path), str(worker_dir)])

        wallet_init.main()

        assert 'MNEMONIC_PHRASE=env seed' in (worker_dir / 'env_file').read_text()

    def test_missing_config_exits_1(self, worker_dir, tmp_path, monkeypatch, capsys):
        monkeypatch.setattr(sys, 'argv', [
            'wallet_init.py', '--config', str(tmp_path / 'config.json'), str(worker_dir),
        ])

        with pytest.raises(SystemExit) as exc_info:
            wallet_init.main()

        assert exc_info.value.code == 1
        assert 'config.json file not found' in capsys.readouterr().err

    def test_missing_worker_dir_exits_1(self, tmp_path, monkeypatch):
        config_path = write_config(tmp_path / 'config.json', {})
        monkeypatch.setattr(sys, 'argv', ['wallet_init.py', '--config', str(config_path)])

        with pytest.raises(SystemExit) as exc_info:
            wallet_init.main()

        assert exc_info.value.code == 1

    def test_interrupted_prompt_exits_1(self, worker_dir, tmp_path, monkeypatch):
        config_path = write_config(tmp_path / 'config.json', {})
        monkeypatch.delenv('MNEMONIC_PHRASE', raising=False)
        monkeypatch.setattr(sys, 'argv', ['wallet_init.py', '--config', str(config_path), str(worker_dir)])

        with patch('builtins.input', side_effect=EOFError):
            with pytest.raises(SystemExit) as exc_info:
                wallet_init.main()

        assert exc_info.value.code == 1
