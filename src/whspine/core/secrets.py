"""Secrets resolution for tenant credentials.

Tenant connection passwords are stored either literally (the historical
layout of ``tenant_connections``) or as a reference that is resolved at
extraction time:

==========================  =========================================
Stored value                Resolved from
==========================  =========================================
``env:ACME_DB_PASSWORD``    Environment variable ``ACME_DB_PASSWORD``
``file:/run/secrets/acme``  File contents (stripped)
``secret:vault:acme``       A registered backend named ``vault``
``s3cr3t``                  Literal value
==========================  =========================================

Whatever the source, the result is a :class:`SecretValue` whose ``str`` and
``repr`` are redacted, so a resolved password can travel inside a
``RemoteConnection`` through log calls without leaking.

Examples:
    >>> resolver = SecretsResolver([DictSecretBackend({"acme": "pw"})])
    >>> resolver.resolve_password("secret:dict:acme")
    SecretValue('[REDACTED]')
    >>> resolver.resolve_password("literal").get_secret()
    'literal'
"""

from __future__ import annotations

import os
import re
from abc import ABC, abstractmethod
from pathlib import Path

from whspine.core.errors import SecretResolutionError

_REDACTED = "[REDACTED]"

# secret:<backend>:<key>  |  env:<key>  |  file:<path>
_REFERENCE_RE = re.compile(r"^(?:secret:(?P<backend>\w+)|(?P<short>env|file)):(?P<key>.+)$")


class SecretValue:
    """A resolved secret. Only :meth:`get_secret` reveals it."""

    __slots__ = ("_secret",)

    def __init__(self, secret: str):
        self._secret = secret

    def get_secret(self) -> str:
        return self._secret

    def __str__(self) -> str:
        return _REDACTED

    def __repr__(self) -> str:
        return f"SecretValue('{_REDACTED}')"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, SecretValue) and other._secret == self._secret

    def __hash__(self) -> int:
        return hash(self._secret)

    def __bool__(self) -> bool:
        return self._secret != ""


class SecretBackend(ABC):
    """A named source of secrets (``secret:<name>:<key>``)."""

    name: str

    @abstractmethod
    def get(self, key: str) -> str | None:
        """The secret for *key*, or ``None`` when this backend lacks it."""


class EnvSecretBackend(SecretBackend):
    """Environment variables: ``KEY``, then ``KEY`` upper-cased, then ``WH_SECRET_KEY``."""

    name = "env"

    def get(self, key: str) -> str | None:
        for var in (key, key.upper(), f"WH_SECRET_{key.upper()}"):
            if var in os.environ:
                return os.environ[var]
        return None


class FileSecretBackend(SecretBackend):
    """Mounted secret files; relative keys live under *secrets_dir*."""

    name = "file"

    def __init__(self, secrets_dir: str | Path = "/run/secrets"):
        self.secrets_dir = Path(secrets_dir)

    def get(self, key: str) -> str | None:
        path = Path(key)
        if not path.is_absolute():
            path = self.secrets_dir / path
        try:
            return path.read_text().strip()
        except OSError:
            return None


class DictSecretBackend(SecretBackend):
    """Secrets held in a dict; for tests and one-off scripts."""

    name = "dict"

    def __init__(self, secrets: dict[str, str] | None = None):
        self.secrets = dict(secrets or {})

    def get(self, key: str) -> str | None:
        return self.secrets.get(key)


class SecretsResolver:
    """Resolves stored passwords through an ordered chain of backends.

    Registered backends are consulted first, in order; ``env`` and ``file``
    are always available behind them.
    """

    def __init__(self, backends: list[SecretBackend] | None = None):
        self.backends: list[SecretBackend] = list(backends or [])
        self._fallbacks: list[SecretBackend] = [EnvSecretBackend(), FileSecretBackend()]

    def add_backend(self, backend: SecretBackend, priority: int | None = None) -> None:
        """Register *backend*; ``priority=0`` puts it ahead of all others."""
        if priority is None:
            self.backends.append(backend)
        else:
            self.backends.insert(priority, backend)

    def is_reference(self, stored: str) -> bool:
        return _REFERENCE_RE.match(stored) is not None

    def resolve_reference(self, reference: str) -> str:
        """Resolve ``env:KEY``, ``file:PATH`` or ``secret:backend:key``.

        Raises:
            SecretResolutionError: malformed reference, unknown backend, or
                a backend without that secret.
        """
        match = _REFERENCE_RE.match(reference)
        if match is None:
            raise SecretResolutionError(
                f"Invalid secret reference format: '{reference}'. "
                "Expected 'env:<key>', 'file:<path>' or 'secret:<backend>:<key>'."
            )
        backend_name = match["backend"] or match["short"]
        key = match["key"]

        backend = next((b for b in self.backends + self._fallbacks if b.name == backend_name), None)
        if backend is None:
            raise SecretResolutionError(f"Unknown secret backend '{backend_name}'")
        value = backend.get(key)
        if value is None:
            raise SecretResolutionError(f"Secret '{key}' not found in backend '{backend_name}'")
        return value

    def resolve_password(self, stored: str) -> SecretValue:
        """A stored password (literal or reference) as a ``SecretValue``."""
        if self.is_reference(stored):
            return SecretValue(self.resolve_reference(stored))
        return SecretValue(stored)


__all__ = [
    "SecretValue",
    "SecretBackend",
    "EnvSecretBackend",
    "FileSecretBackend",
    "DictSecretBackend",
    "SecretsResolver",
]
