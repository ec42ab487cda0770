"""Tests for client configuration and settings loading."""

import dataclasses
from pathlib import Path

import pytest

from lfs_client.auth import BearerAuth, Credential, credential_from_env
from lfs_client.config import ClientConfig, Settings, load_config
from lfs_client.errors import InvalidUrlError

ENDPOINT = "https://github.com/o/r.git/info/lfs/"


class TestClientConfig:
    """Test the immutable config and its builder."""

    def test_defaults(self):
        config = ClientConfig.from_remote("git@github.com:o/r.git").build()
        assert config.endpoint == ENDPOINT
        assert config.credential is None
        assert config.ref_name is None
        assert config.transfers == ("basic",)
        assert config.timeout == 60.0
        assert config.user_agent.startswith("lfs-client/")

    def test_frozen(self):
        config = ClientConfig(endpoint=ENDPOINT)
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.timeout = 1

    def test_trailing_slash_added(self):
        assert ClientConfig(endpoint=ENDPOINT.rstrip("/")).endpoint == ENDPOINT

    def test_empty_endpoint_rejected(self):
        with pytest.raises(InvalidUrlError):
            ClientConfig(endpoint="")

    def test_builder_chain(self):
        config = (
            ClientConfig.builder("https://lfs.example.com/api")
            .with_token("abc")
            .with_ref("refs/heads/main")
            .with_timeout(5)
            .with_user_agent("tool/1.0")
            .build()
        )
        assert config.endpoint == "https://lfs.example.com/api/"
        assert config.credential == Credential.bearer("abc")
        assert config.ref_name == "refs/heads/main"
        assert config.timeout == 5.0
        assert config.user_agent == "tool/1.0"

    def test_with_endpoint_overrides(self):
        config = ClientConfig.from_remote("https://github.com/o/r").with_endpoint("https://other/lfs").build()
        assert config.endpoint == "https://other/lfs/"

    def test_empty_ref_is_none(self):
        assert ClientConfig.builder(ENDPOINT).with_ref("").build().ref_name is None

    def test_with_transfers(self):
        config = ClientConfig.builder(ENDPOINT).with_transfers("lfs-standalone-file", "basic").build()
        assert config.transfers == ("lfs-standalone-file", "basic")

    def test_with_transfers_requires_one(self):
        with pytest.raises(ValueError):
            ClientConfig.builder(ENDPOINT).with_transfers()

    @pytest.mark.parametrize("timeout", [0, -1])
    def test_invalid_timeout(self, timeout):
        with pytest.raises(ValueError):
            ClientConfig.builder(ENDPOINT).with_timeout(timeout)

    def test_invalid_remote(self):
        with pytest.raises(InvalidUrlError):
            ClientConfig.from_remote("ftp://example.com/o/r")


class TestCredentials:
    """Test credential validation and environment lookup."""

    def test_bearer_auth(self):
        auth = Credential.bearer("s3cr3t").to_requests_auth()
        assert auth == BearerAuth("s3cr3t")
        assert "s3cr3t" not in repr(auth)

    def test_basic_auth(self):
        auth = Credential.basic("user", "pw").to_requests_auth()
        assert auth.username == "user"
        assert auth.password == "pw"

    def test_repr_hides_secrets(self):
        assert "s3cr3t" not in repr(Credential.basic("user", "s3cr3t"))
        assert "s3cr3t" not in repr(Credential.bearer("s3cr3t"))

    def test_token_and_password_rejected(self):
        with pytest.raises(ValueError):
            Credential(token="tok", username="user", password="pw")

    def test_empty_rejected(self):
        with pytest.raises(ValueError):
            Credential()

    def test_env_token_wins(self):
        env = {"LFS_TOKEN": "tok", "LFS_USERNAME": "user", "LFS_PASSWORD": "pw"}
        assert credential_from_env(env) == Credential.bearer("tok")

    def test_env_basic(self):
        env = {"LFS_USERNAME": "user", "LFS_PASSWORD": "pw"}
        assert credential_from_env(env) == Credential.basic("user", "pw")

    def test_env_incomplete_is_anonymous(self):
        assert credential_from_env({"LFS_USERNAME": "user"}) is None
        assert credential_from_env({}) is None


class TestLoadConfig:
    """Test YAML settings with environment overrides."""

    def test_missing_file_gives_defaults(self, tmp_path):
        settings = load_config(tmp_path / "absent.yaml", environ={})
        assert settings == Settings()

    def test_yaml_file(self, tmp_path):
        cfg = tmp_path / ".lfs-client.yaml"
        cfg.write_text(
            "remote: git@github.com:o/r.git\n"
            "ref: refs/heads/main\n"
            "timeout: 15\n"
            "cache_dir: /tmp/lfs-objects\n"
        )
        settings = load_config(cfg, environ={})
        assert settings.remote == "git@github.com:o/r.git"
        assert settings.ref == "refs/heads/main"
        assert settings.timeout == 15.0
        assert settings.cache_dir == Path("/tmp/lfs-objects")

    def test_default_path_is_cwd(self, tmp_path, monkeypatch):
        (tmp_path / ".lfs-client.yaml").write_text("endpoint: https://lfs.example.com/\n")
        monkeypatch.chdir(tmp_path)
        assert load_config(environ={}).endpoint == "https://lfs.example.com/"

    def test_env_overrides_file(self, tmp_path):
        cfg = tmp_path / "cfg.yaml"
        cfg.write_text("remote: https://github.com/o/r\ntimeout: 15\n")
        env = {"LFS_CLIENT_REMOTE": "https://github.com/x/y", "LFS_CLIENT_TIMEOUT": "30"}
        settings = load_config(cfg, environ=env)
        assert settings.remote == "https://github.com/x/y"
        assert settings.timeout == 30.0

    def test_non_mapping_rejected(self, tmp_path):
        cfg = tmp_path / "cfg.yaml"
        cfg.write_text("- a\n- b\n")
        with pytest.raises(ValueError, match="mapping"):
            load_config(cfg, environ={})

    @pytest.mark.parametrize("timeout", ["0", "-5"])
    def test_non_positive_timeout_rejected(self, tmp_path, timeout):
        cfg = tmp_path / "cfg.yaml"
        cfg.write_text(f"timeout: {timeout}\n")
        with pytest.raises(ValueError):
            load_config(cfg, environ={})

    def test_invalid_value_rejected(self, tmp_path):
        with pytest.raises(ValueError):
            load_config(tmp_path / "absent.yaml", environ={"LFS_CLIENT_TIMEOUT": "soon"})


class TestSettingsClientConfig:
    """Test turning settings into a client config."""

    def test_endpoint_wins_over_remote(self):
        settings = Settings(remote="https://github.com/o/r", endpoint="https://lfs.example.com/x")
        config = settings.client_config(credential=Credential.bearer("t"))
        assert config.endpoint == "https://lfs.example.com/x/"

    def test_remote_argument_wins(self):
        settings = Settings(endpoint="https://lfs.example.com/x")
        config = settings.client_config(credential=Credential.bearer("t"), remote="https://github.com/o/r")
        assert config.endpoint == ENDPOINT

    def test_ref_and_timeout_applied(self):
        settings = Settings(remote="https://github.com/o/r", ref="refs/heads/dev", timeout=12)
        config = settings.client_config(credential=Credential.bearer("t"))
        assert config.ref_name == "refs/heads/dev"
        assert config.timeout == 12.0

    def test_credential_from_environment(self, monkeypatch):
        monkeypatch.setenv("LFS_TOKEN", "env-token")
        config = Settings(remote="https://github.com/o/r").client_config()
        assert config.credential == Credential.bearer("env-token")

    def test_nothing_configured(self):
        with pytest.raises(InvalidUrlError, match="no LFS remote"):
            Settings().client_config()
