"""Outbound authentication for calls to the upstream API."""

from __future__ import annotations

import base64
import logging
from typing import Dict, Optional


logger = logging.getLogger(__name__)

AUTH_TYPES = ("none", "bearer", "apikey", "basic")


class AuthManager:
    def __init__(
        self,
        auth_type: str = "none",
        token: Optional[str] = None,
        header: str = "Authorization",
        api_key_header: Optional[str] = "X-API-Key",
    ) -> None:
        auth_type = (auth_type or "none").lower()
        if auth_type not in AUTH_TYPES:
            logger.warning("Unknown authentication type: %s, treating as none", auth_type)
            auth_type = "none"
        self._auth_type = auth_type
        self._token = token
        self.header = header
        self.api_key_header = api_key_header

    @classmethod
    def from_settings(cls, settings) -> "AuthManager":
        return cls(
            auth_type=settings.auth_type,
            token=settings.auth_token,
            header=settings.auth_header,
            api_key_header=settings.api_key_header,
        )

    @property
    def auth_type(self) -> str:
        return self._auth_type

    def is_configured(self) -> bool:
        return self._auth_type != "none" and bool(self._token)

    def update_token(self, token: str) -> None:
        self._token = token
        logger.info("Authentication token updated")

    def apply(self, headers: Dict[str, str]) -> Dict[str, str]:
        """Add credential headers to ``headers`` in place and return it."""
        if self._auth_type == "bearer":
            if self._token:
                _set_header(headers, self.header, f"Bearer {self._token}")
                logger.debug("Applied Bearer token authentication")
            else:
                logger.warning("Bearer auth configured but no token provided")
        elif self._auth_type == "apikey":
            if self._token and self.api_key_header:
                _set_header(headers, self.api_key_header, self._token)
                logger.debug("Applied API key authentication to header: %s", self.api_key_header)
            else:
                logger.warning("API key auth configured but no token or header name provided")
        elif self._auth_type == "basic":
            if self._token:
                encoded = base64.b64encode(self._token.encode("utf-8")).decode("ascii")
                _set_header(headers, self.header, f"Basic {encoded}")
                logger.debug("Applied Basic authentication")
            else:
                logger.warning("Basic auth configured but no credentials provided")
        return headers


def _set_header(headers: Dict[str, str], name: str, value: str) -> None:
    for key in [key for key in headers if key.lower() == name.lower()]:
        del headers[key]
    headers[name] = value
