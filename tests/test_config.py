"""Tests for configuration loading."""

import pytest
from pydantic import ValidationError

from zoiner.config import load_config

CONFIG_YAML = """
farcaster:
  api_key: ${TEST_NEYNAR_KEY}
  signer_uuid: signer-1
  bot_fid: 999
pinata:
  jwt: ${TEST_PINATA_JWT}
zora:
  private_key: "0x1111111111111111111111111111111111111111111111111111111111111111"
  platform_referrer: "0x00000000000000000000000000000000000000aa"
bot:
  dry_run: true
  cooldown_seconds: 45
llm:
  enabled: false
"""


class TestLoadConfig:
    def setup_method(self):
        self.yaml = CONFIG_YAML

    def _write(self, tmp_path, text):
        path = tmp_path / "config.yaml"
        path.write_text(text)
        return path

    def test_env_expansion_and_defaults(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TEST_NEYNAR_KEY", "neynar-secret")
        monkeypatch.setenv("TEST_PINATA_JWT", "pinata-secret")

        config = load_config(self._write(tmp_path, self.yaml))

        assert config.farcaster.api_key.get_secret_value() == "neynar-secret"
        assert config.pinata.jwt.get_secret_value() == "pinata-secret"
        assert config.farcaster.bot_name == "zoiner"
        assert config.bot.dry_run is True
        assert config.bot.cooldown_seconds == 45
        assert config.bot.loop_guard_seconds == 10
        assert config.bot.conversation_retention == 5
        assert config.llm.enabled is False
        assert config.zora.chain_id == 8453
        assert config.server.public_url is None

    def test_missing_env_var(self, tmp_path, monkeypatch):
        monkeypatch.delenv("TEST_NEYNAR_KEY", raising=False)
        monkeypatch.setenv("TEST_PINATA_JWT", "pinata-secret")

        with pytest.raises(ValueError, match="TEST_NEYNAR_KEY"):
            load_config(self._write(tmp_path, self.yaml))

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")

    def test_invalid_referrer(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TEST_NEYNAR_KEY", "k")
        monkeypatch.setenv("TEST_PINATA_JWT", "j")
        text = self.yaml.replace("0x00000000000000000000000000000000000000aa", "not-an-address")

        with pytest.raises(ValidationError):
            load_config(self._write(tmp_path, text))

    def test_secrets_hidden_in_repr(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TEST_NEYNAR_KEY", "neynar-secret")
        monkeypatch.setenv("TEST_PINATA_JWT", "pinata-secret")

        config = load_config(self._write(tmp_path, self.yaml))
        assert "neynar-secret" not in repr(config)
