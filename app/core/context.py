"""
core/context.py
----------------

In‑memory store for previously supplied catalog credentials. The
lookup service consults it once when an operation arrives before
``configure`` has been called, so a terminal that already logged in
can recover without the caller supplying the credential again. Note
that this store resides in process memory; in a multi‑worker
deployment the state will not be shared across workers.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class StoredCredential:
    credential: str
    environment: str


class CredentialContext:
    """Holds the last credential a consumer configured."""

    def __init__(self) -> None:
        self._stored: Optional[StoredCredential] = None

    def set(self, credential: str, environment: str) -> None:
        """Persist the credential for later lazy configuration."""
        self._stored = StoredCredential(credential=credential, environment=environment)

    def get(self) -> Optional[StoredCredential]:
        """Retrieve the stored credential if one exists."""
        return self._stored
