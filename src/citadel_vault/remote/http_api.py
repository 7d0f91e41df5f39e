# Remote - HTTP Transport
#
# httpx implementation of the vault transport:
#   GET  {url}/config
#   GET  {url}/{username}/{remote_key}/vaultage_api
#   POST {url}/{username}/{remote_key}/vaultage_api
#
# Pull/push bodies are {"error": true, "code": ..., "description": ...} on
# failure. This class only formats and sends requests; it does no crypto.

import logging
import re
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from ..core.config import DEFAULT_HTTP_TIMEOUT_SEC
from ..errors import (
    BadCredentials,
    DemoModeRejected,
    NetworkError,
    StaleWrite,
    VaultError,
)
from .transport import Credentials, HttpParams, ServerConfig, Transport

logger = logging.getLogger(__name__)

# Anything outside the cipher document alphabet is dropped from pulled data
_CIPHER_SANITIZER = re.compile(r'[^a-z0-9+/:"{},]', re.IGNORECASE)

_PROTOCOL_ERRORS = {
    "EFAST": (StaleWrite, "The server has a newer version of the DB"),
    "EAUTH": (BadCredentials, "Invalid credentials"),
    "EDEMO": (DemoModeRejected, "Server in demo mode"),
}


def protocol_error(body: Dict[str, Any]) -> VaultError:
    """Map an error response body to its exception."""
    code = body.get("code")
    if code in _PROTOCOL_ERRORS:
        error_class, message = _PROTOCOL_ERRORS[code]
        return error_class(message)
    return NetworkError(f"The response received is not defined in the protocol (code={code!r})")


def sanitize_cipher(data: Optional[str]) -> str:
    return _CIPHER_SANITIZER.sub("", data or "")


def make_api_url(server_url: str, username: str, remote_key: str) -> str:
    return f"{server_url}/{quote(username, safe='')}/{remote_key}/vaultage_api"


class HttpApi(Transport):
    """
    Vault server client over HTTP.

    Args:
        http_params: Optional basic auth applied to every request
        timeout: Per-request timeout in seconds
        client: Pre-built AsyncClient (tests inject one with a MockTransport);
                when omitted a short-lived client is opened per request
    """

    def __init__(
        self,
        http_params: Optional[HttpParams] = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT_SEC,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.http_params = http_params or HttpParams()
        self.timeout = timeout
        self._client = client

    async def _request(self, method: str, url: str, json: Optional[Dict[str, Any]] = None) -> Any:
        kwargs: Dict[str, Any] = {"timeout": self.timeout}
        if json is not None:
            kwargs["json"] = json
        if self.http_params.auth is not None:
            kwargs["auth"] = self.http_params.auth

        try:
            if self._client is not None:
                resp = await self._client.request(method, url, **kwargs)
            else:
                async with httpx.AsyncClient() as client:
                    resp = await client.request(method, url, **kwargs)
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPStatusError as exc:
            logger.warning("Vault server returned HTTP %s", exc.response.status_code)
            raise NetworkError(f"HTTP {exc.response.status_code} from server", exc) from exc
        except httpx.HTTPError as exc:
            logger.warning("Vault server request failed: %s", type(exc).__name__)
            raise NetworkError("Request to the vault server failed", exc) from exc
        except ValueError as exc:
            raise NetworkError("Bad server response", exc) from exc

    async def pull_config(self, server_url: str) -> ServerConfig:
        body = await self._request("GET", f"{server_url}/config")
        try:
            return ServerConfig.model_validate(body)
        except ValidationError as exc:
            raise NetworkError("Bad server response", exc) from exc

    async def pull_cipher(self, creds: Credentials) -> str:
        body = await self._request(
            "GET", make_api_url(creds.server_url, creds.username, creds.remote_key)
        )
        if not isinstance(body, dict):
            raise NetworkError("Bad server response")
        if body.get("error") is True:
            raise protocol_error(body)
        return sanitize_cipher(body.get("data"))

    async def push_cipher(
        self,
        creds: Credentials,
        new_remote_key: Optional[str],
        cipher: str,
        old_fingerprint: Optional[str],
        new_fingerprint: str,
    ) -> None:
        request: Dict[str, Any] = {
            "new_data": cipher,
            "new_hash": new_fingerprint,
            "force": False,
        }
        if new_remote_key:
            request["new_password"] = new_remote_key
        if old_fingerprint is not None:
            request["old_hash"] = old_fingerprint

        body = await self._request(
            "POST",
            make_api_url(creds.server_url, creds.username, creds.remote_key),
            json=request,
        )
        if not isinstance(body, dict):
            raise NetworkError("Bad server response")
        if body.get("error") is True:
            raise protocol_error(body)
