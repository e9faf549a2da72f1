"""Tests for tenant credential resolution."""

import pytest

from whspine.core.errors import SecretResolutionError
from whspine.core.secrets import (
    DictSecretBackend,
    EnvSecretBackend,
    FileSecretBackend,
    SecretsResolver,
    SecretValue,
)


class TestSecretValue:
    def test_redacted(self):
        v = SecretValue("hunter2")
        assert str(v) == "[REDACTED]"
        assert "hunter2" not in repr(v)
        assert f"{v}" == "[REDACTED]"
        assert v.get_secret() == "hunter2"

    def test_equality_and_truthiness(self):
        assert SecretValue("a") == SecretValue("a")
        assert SecretValue("a") != "a"
        assert not SecretValue("")


class TestBackends:
    def test_env_prefixed_fallback(self, monkeypatch):
        monkeypatch.setenv("WH_SECRET_ACME", "from-prefix")
        assert EnvSecretBackend().get("acme") == "from-prefix"

    def test_env_exact_wins(self, monkeypatch):
        monkeypatch.setenv("ACME_PW", "exact")
        monkeypatch.setenv("WH_SECRET_ACME_PW", "prefixed")
        assert EnvSecretBackend().get("ACME_PW") == "exact"

    def test_file_relative_and_absolute(self, tmp_path):
        (tmp_path / "acme").write_text("  pw-from-file\n")
        backend = FileSecretBackend(tmp_path)
        assert backend.get("acme") == "pw-from-file"
        assert backend.get(str(tmp_path / "acme")) == "pw-from-file"
        assert backend.get("missing") is None

    def test_dict(self):
        backend = DictSecretBackend({"a": "1"})
        assert backend.get("a") == "1"
        assert backend.get("b") is None


class TestResolver:
    def test_literal_passthrough(self):
        assert SecretsResolver().resolve_password("s3cret").get_secret() == "s3cret"

    def test_env_reference(self, monkeypatch):
        monkeypatch.setenv("ACME_DB_PASSWORD", "pw")
        assert SecretsResolver().resolve_password("env:ACME_DB_PASSWORD").get_secret() == "pw"

    def test_file_reference(self, tmp_path):
        path = tmp_path / "acme.pw"
        path.write_text("pw\n")
        assert SecretsResolver().resolve_reference(f"file:{path}") == "pw"

    def test_registered_backend(self):
        resolver = SecretsResolver([DictSecretBackend({"acme": "vault-pw"})])
        assert resolver.resolve_password("secret:dict:acme").get_secret() == "vault-pw"

    def test_is_reference(self):
        resolver = SecretsResolver()
        assert resolver.is_reference("env:X")
        assert resolver.is_reference("secret:vault:x")
        assert not resolver.is_reference("plain-password")

    def test_missing_secret(self, monkeypatch):
        monkeypatch.delenv("NOPE_NOT_SET", raising=False)
        monkeypatch.delenv("WH_SECRET_NOPE_NOT_SET", raising=False)
        with pytest.raises(SecretResolutionError, match="not found"):
            SecretsResolver().resolve_reference("env:NOPE_NOT_SET")

    def test_unknown_backend(self):
        with pytest.raises(SecretResolutionError, match="Unknown secret backend"):
            SecretsResolver().resolve_reference("secret:vault:acme")

    def test_malformed(self):
        with pytest.raises(SecretResolutionError, match="Invalid secret reference"):
            SecretsResolver().resolve_reference("vault/acme")

    def test_priority_insert(self):
        resolver = SecretsResolver([DictSecretBackend({"k": "second"})])
        first = DictSecretBackend({"k": "first"})
        resolver.add_backend(first, priority=0)
        assert resolver.resolve_reference("secret:dict:k") == "first"
