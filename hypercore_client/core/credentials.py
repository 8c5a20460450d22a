from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class Credentials:
    """Account material used to bind a signing wallet.

    ``key`` is the address the caller expects the secret to derive to,
    ``client_id`` overrides the account address reads default to and
    ``sub_account`` is the vault signed actions are scoped to.
    """

    secret: str = field(repr=False)
    key: str = ""
    client_id: str = ""
    sub_account: str = ""


@runtime_checkable
class CredentialProvider(Protocol):
    async def get_credentials(self) -> Credentials: ...


class StaticCredentialProvider:
    def __init__(self, credentials: Credentials | None) -> None:
        self._credentials = credentials

    async def get_credentials(self) -> Credentials:
        if self._credentials is None:
            return Credentials(secret="")
        return self._credentials
