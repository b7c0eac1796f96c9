"""
Login token cache

The cache is a small YAML file in the user's home directory holding the
username, the OAuth2 provider settings and the most recent token.
"""

import logging
import os
import time
from pathlib import Path
from typing import Dict, Optional

import requests
import yaml

from ..errors import ApiError, TrafficCtlError, ValidationError

logger = logging.getLogger(__name__)

CACHE_FILE_NAME = ".traffic-ctl-auth-cache"
DEFAULT_PROVIDER_URL = "https://login.turbinelabs.io/auth/realms/turbine-labs"
DEFAULT_CLIENT_ID = "traffic-ctl"


def token_cache_path() -> Path:
    return Path(os.path.expanduser("~")) / CACHE_FILE_NAME


class TokenCache:
    """Cached login state, loaded from and saved to a YAML file."""

    def __init__(self, path: Optional[Path] = None, data: Optional[Dict] = None):
        self.path = Path(path) if path else token_cache_path()
        data = data or {}
        self.username = data.get("username", "")
        self.provider_url = data.get("provider_url", DEFAULT_PROVIDER_URL)
        self.client_id = data.get("client_id", DEFAULT_CLIENT_ID)
        self.token = data.get("token") or {}

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "TokenCache":
        path = Path(path) if path else token_cache_path()
        if not path.exists():
            return cls(path)
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise TrafficCtlError(f"Unable to process token cache ({path}): {e}")
        return cls(path, data)

    def to_dict(self) -> Dict:
        return {
            "username": self.username,
            "provider_url": self.provider_url,
            "client_id": self.client_id,
            "token": self.token,
        }

    def save(self) -> None:
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        # an existing cache keeps its old mode under O_CREAT
        os.fchmod(fd, 0o600)
        with os.fdopen(fd, "w") as f:
            yaml.safe_dump(self.to_dict(), f, default_flow_style=False)
        logger.debug(f"Token cache saved to {self.path}")

    def access_token(self) -> Optional[str]:
        """The cached access token, if one exists and has not expired."""
        value = self.token.get("access_token")
        if not value:
            return None
        expires_at = self.token.get("expires_at")
        if expires_at and expires_at <= time.time():
            logger.warning("Cached login token has expired; run traffic-ctl login")
            return None
        return value

    def clear(self) -> None:
        self.token = {}


def login(cache: TokenCache, username: str, password: str, timeout: int = 30) -> TokenCache:
    """
    Obtain a token with the OAuth2 password grant and store it in the cache.

    Raises:
        ValidationError: If the username or password is empty
        ApiError: If authentication fails
    """
    if not username:
        raise ValidationError("Username must not be blank")
    if not password:
        raise ValidationError("password must not be empty")

    url = f"{cache.provider_url.rstrip('/')}/protocol/openid-connect/token"
    logger.info(f"Authenticating {username} against {cache.provider_url}")
    try:
        response = requests.post(
            url,
            data={
                "grant_type": "password",
                "client_id": cache.client_id,
                "username": username,
                "password": password,
            },
            timeout=timeout,
        )
    except requests.RequestException as e:
        raise ApiError(f"unable to reach {cache.provider_url}: {e}")

    if response.status_code != 200:
        raise ApiError(
            f"unable to authenticate using username {username!r} and password: "
            f"HTTP {response.status_code}",
            status=response.status_code,
        )

    token = response.json()
    if "expires_in" in token:
        token["expires_at"] = int(time.time()) + int(token["expires_in"])

    cache.username = username
    cache.token = token
    cache.save()
    return cache


def logout(cache: TokenCache) -> TokenCache:
    """Forget the cached token, keeping the username for the next login."""
    cache.clear()
    cache.save()
    logger.info("Logged out")
    return cache
