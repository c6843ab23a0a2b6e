"""
Unit tests for environment-driven configuration.
"""

import os

import pytest

from blockscan.client import MAINNET_API_URL
from blockscan.config import StorageConfig, load_config
from blockscan.errors import ConfigError

ENV_KEYS = [
    "BLOCKSCAN_API_URLS",
    "BLOCKSCAN_API_KEY",
    "BLOCKSCAN_POLL_INTERVAL",
    "BLOCKSCAN_REQUEST_TIMEOUT",
    "BLOCKSCAN_MAX_RETRIES",
    "BLOCKSCAN_RETRY_BACKOFF",
    "BLOCKSCAN_CHECKPOINT_PATH",
    "BLOCKSCAN_RECORD_MASTER",
    "DB_BACKEND",
    "DB_PATH",
    "DB_HOST",
    "DB_PORT",
    "DB_NAME",
    "DB_USER",
    "DB_PASSWORD",
]


@pytest.fixture
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    yield
    # load_dotenv writes straight into os.environ
    for key in ENV_KEYS:
        os.environ.pop(key, None)


@pytest.fixture
def no_env_file(tmp_path):
    return str(tmp_path / "missing.env")


class TestDefaults:

    def test_defaults(self, clean_env, no_env_file):
        config = load_config(no_env_file)

        assert config.source.api_urls == [MAINNET_API_URL]
        assert config.source.api_key is None
        assert config.storage.backend == "sqlite"
        assert config.scan.checkpoint_path == "data/frontier.json"
        assert config.scan.record_master_blocks is True


class TestEnvironment:

    def test_multiple_endpoints(self, clean_env, no_env_file, monkeypatch):
        monkeypatch.setenv("BLOCKSCAN_API_URLS", "http://a/api/v2, http://b/api/v2")

        config = load_config(no_env_file)

        assert config.source.api_urls == ["http://a/api/v2", "http://b/api/v2"]

    def test_numeric_values(self, clean_env, no_env_file, monkeypatch):
        monkeypatch.setenv("BLOCKSCAN_POLL_INTERVAL", "2.5")
        monkeypatch.setenv("DB_PORT", "6543")

        config = load_config(no_env_file)

        assert config.source.poll_interval == 2.5
        assert config.storage.db_port == 6543

    def test_retry_settings(self, clean_env, no_env_file, monkeypatch):
        monkeypatch.setenv("BLOCKSCAN_MAX_RETRIES", "5")
        monkeypatch.setenv("BLOCKSCAN_RETRY_BACKOFF", "0.25")

        config = load_config(no_env_file)

        assert config.source.max_retries == 5
        assert config.source.retry_backoff == 0.25

    def test_negative_retries(self, clean_env, no_env_file, monkeypatch):
        monkeypatch.setenv("BLOCKSCAN_MAX_RETRIES", "-1")

        with pytest.raises(ConfigError, match="BLOCKSCAN_MAX_RETRIES"):
            load_config(no_env_file)

    def test_bad_number(self, clean_env, no_env_file, monkeypatch):
        monkeypatch.setenv("DB_PORT", "not-a-port")

        with pytest.raises(ConfigError, match="DB_PORT"):
            load_config(no_env_file)

    def test_unknown_backend(self, clean_env, no_env_file, monkeypatch):
        monkeypatch.setenv("DB_BACKEND", "mysql")

        with pytest.raises(ConfigError, match="DB_BACKEND"):
            load_config(no_env_file)

    def test_empty_checkpoint_disables_it(self, clean_env, no_env_file, monkeypatch):
        monkeypatch.setenv("BLOCKSCAN_CHECKPOINT_PATH", "")

        assert load_config(no_env_file).scan.checkpoint_path is None

    def test_record_master_flag(self, clean_env, no_env_file, monkeypatch):
        monkeypatch.setenv("BLOCKSCAN_RECORD_MASTER", "false")

        assert load_config(no_env_file).scan.record_master_blocks is False


class TestDotenv:

    def test_env_file_loaded(self, clean_env, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text(
            "DB_BACKEND=postgres\n"
            "DB_HOST=db.internal\n"
            "DB_USER=scanner\n"
            "DB_PASSWORD=hunter2\n"
            "BLOCKSCAN_API_KEY=abc\n"
        )

        config = load_config(str(env_file))

        assert config.storage.backend == "postgres"
        assert config.source.api_key == "abc"
        assert config.storage.connect_params == {
            "host": "db.internal",
            "port": 5432,
            "database": "dice",
            "user": "scanner",
            "password": "hunter2",
        }

    def test_environment_wins_over_env_file(self, clean_env, tmp_path, monkeypatch):
        env_file = tmp_path / ".env"
        env_file.write_text("DB_PATH=from_file.db\n")
        monkeypatch.setenv("DB_PATH", "from_env.db")

        assert load_config(str(env_file)).storage.db_path == "from_env.db"


class TestStorageConfig:

    def test_connect_params(self):
        config = StorageConfig(db_host="h", db_port=1, db_name="n", db_user="u", db_password="p")

        assert config.connect_params == {
            "host": "h", "port": 1, "database": "n", "user": "u", "password": "p",
        }

    def test_password_special_characters_kept_verbatim(self):
        config = StorageConfig(db_host="dbhost", db_user="us@r", db_password="p@ss/wo:rd#1")

        params = config.connect_params

        assert params["password"] == "p@ss/wo:rd#1"
        assert params["user"] == "us@r"
        assert params["host"] == "dbhost"
