"""RegistrationClient — exchanges an API credential for an agent registration token."""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx
from pydantic import ValidationError as PydanticValidationError

from lxc_runner.errors import AuthError, NotFoundError, TransportError
from lxc_runner.models import Scope
from lxc_runner.registration.models import RegistrationToken

logger = logging.getLogger(__name__)


def token_endpoint(scope: Scope, owner: str, repository: str | None = None) -> str:
    """API path of the registration-token endpoint for *scope*."""
    if scope is Scope.REPOSITORY:
        return f"/repos/{owner}/{repository}/actions/runners/registration-token"
    return f"/orgs/{owner}/actions/runners/registration-token"


def registration_url(web_url: str, scope: Scope, owner: str, repository: str | None = None) -> str:
    """URL the agent registers against."""
    base = web_url.rstrip("/")
    if scope is Scope.REPOSITORY:
        return f"{base}/{owner}/{repository}"
    return f"{base}/{owner}"


class RegistrationClient:
    """Talks to the control-plane REST API.

    One request per token.  Failures are never retried here: tokens are
    single-use and hammering the API risks rate-limiting the credential.

    Usage::

        async with RegistrationClient() as client:
            token = await client.fetch_registration_token(
                Scope.REPOSITORY, "acme", "widgets", credential
            )
    """

    def __init__(
        self,
        api_url: str = "https://api.github.com",
        *,
        api_version: str = "2022-11-28",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_url = api_url.rstrip("/")
        self._api_version = api_version
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> RegistrationClient:
        self._client = httpx.AsyncClient(
            base_url=self._api_url,
            timeout=self._timeout,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *_: object) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            msg = "RegistrationClient must be used as an async context manager"
            raise RuntimeError(msg)
        return self._client

    async def fetch_registration_token(
        self,
        scope: Scope,
        owner: str,
        repository: str | None,
        credential: str,
    ) -> RegistrationToken:
        """POST to the scope's registration-token endpoint.

        Raises:
            AuthError: 401/403, or a success response without a usable token.
            NotFoundError: 404.
            TransportError: Network failure or any other unexpected status.
        """
        path = token_endpoint(scope, owner, repository)
        headers = {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {credential}",
            "X-GitHub-Api-Version": self._api_version,
        }

        try:
            response = await self._http().post(path, headers=headers)
        except httpx.HTTPError as exc:
            raise TransportError(f"Token request to {path} failed: {exc}") from exc

        body = response.text
        if response.status_code in (401, 403):
            raise AuthError(
                f"Credential rejected ({response.status_code}). Check the token and its scope",
                response_body=body,
            )
        if response.status_code == 404:
            raise NotFoundError(f"{path} not found. Check the owner and repository")
        if not response.is_success:
            raise TransportError(f"Unexpected status {response.status_code} from {path}: {body}")

        return self._parse_token(body)

    @staticmethod
    def _parse_token(body: str) -> RegistrationToken:
        try:
            data: Any = json.loads(body)
        except json.JSONDecodeError:
            data = None

        if not isinstance(data, dict) or not data.get("token"):
            raise AuthError(
                "Invalid registration token received. Check the credential and target",
                response_body=body,
            )

        try:
            token = RegistrationToken.model_validate(
                {"token": data["token"], "expires_at": data.get("expires_at")}
            )
        except PydanticValidationError as exc:
            raise AuthError(f"Malformed token response: {exc}", response_body=body) from exc

        logger.debug("Registration token obtained (expires %s)", token.expires_at)
        return token
