"""httpx integration: sign every outgoing request with an AgentSigner."""

from __future__ import annotations

from email.utils import formatdate
from typing import AsyncGenerator, Generator

import anyio.to_thread
import httpx

from .signer import AgentSigner


class AgentSignatureAuth(httpx.Auth):
    """Adds ``Date`` and ``Authorization: Signature ...`` headers.

    An existing ``Date`` header is signed as-is; otherwise the current time
    is set in IMF-fixdate form. With ``httpx.AsyncClient`` the blocking agent
    round trip runs in a worker thread.

    Usage::

        signer = AgentSigner.connect(fingerprint, "my-account")
        with httpx.Client(auth=AgentSignatureAuth(signer)) as client:
            client.get("https://cloudapi.example.com/my-account/machines")
    """

    def __init__(self, signer: AgentSigner) -> None:
        self._signer = signer

    @staticmethod
    def _stamp_date(request: httpx.Request) -> str:
        date = request.headers.get("Date")
        if date is None:
            date = formatdate(usegmt=True)
            request.headers["Date"] = date
        return date

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        date = self._stamp_date(request)
        request.headers["Authorization"] = f"Signature {self._signer.sign(date)}"
        yield request

    async def async_auth_flow(
        self, request: httpx.Request
    ) -> AsyncGenerator[httpx.Request, httpx.Response]:
        date = self._stamp_date(request)
        header = await anyio.to_thread.run_sync(self._signer.sign, date)
        request.headers["Authorization"] = f"Signature {header}"
        yield request
