"""Secret sources for the token secret."""
from __future__ import annotations

import logging
import os
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

DEFAULT_PARAMETERS_ENDPOINT = "http://localhost:2773"


class StaticSecretSource:
    """Secret configured directly."""

    def __init__(self, value: Optional[str]):
        self._value = value

    def get_secret(self) -> str:
        if not self._value:
            raise KeyError("token secret is not configured")
        return self._value


class EnvSecretSource:
    """Secret read from an environment variable on every call."""

    def __init__(self, variable: str = "IMAGEFLOW_TOKEN_SECRET"):
        self._variable = variable

    def get_secret(self) -> str:
        value = os.getenv(self._variable)
        if not value:
            raise KeyError(self._variable)
        return value


class ParameterStoreSecretSource:
    """
    Secret fetched from the parameters and secrets extension.

    GET {endpoint}/systemsmanager/parameters/get/?name=<name>&withDecryption=true
    Reply: {"Parameter": {"Value": "..."}}
    """

    def __init__(
        self,
        name: str,
        endpoint: str = DEFAULT_PARAMETERS_ENDPOINT,
        session_token: Optional[str] = None,
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
    ):
        self._name = name
        self._endpoint = endpoint.rstrip("/")
        self._session_token = session_token
        self._timeout = timeout
        self._client = client

    def _headers(self) -> dict:
        token = self._session_token or os.getenv("AWS_SESSION_TOKEN") or ""
        return {"X-Aws-Parameters-Secrets-Token": token}

    def get_secret(self) -> str:
        url = f"{self._endpoint}/systemsmanager/parameters/get/"
        params = {"name": self._name, "withDecryption": "true"}

        try:
            if self._client is not None:
                response = self._client.get(url, params=params, headers=self._headers())
            else:
                with httpx.Client(timeout=self._timeout) as client:
                    response = client.get(url, params=params, headers=self._headers())
            response.raise_for_status()
            value = response.json()["Parameter"]["Value"]
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as exc:
            logger.error(f"[secrets] cannot read parameter {self._name}: {exc}")
            raise KeyError(self._name) from exc

        if not value:
            raise KeyError(self._name)
        return value
