"""
HTTP configuration API provider implementation.

This module talks to the REST configuration API using the requests library.
Responses wrap their payload as {"result": ...}; failures carry
{"error": {"message", "code", "details"}} and are mapped onto the
traffic-ctl error hierarchy by HTTP status.
"""

import json
import logging
import os
from typing import Dict, List, Optional

import requests

from .base_provider import ConfigProvider
from ..errors import ApiError, BadRequestError, ConflictError, NotFoundError

logger = logging.getLogger(__name__)

API_VERSION = "v1.0"
API_KEY_HEADER = "X-Turbine-API-Key"
API_KEY_ENV = "TRAFFIC_CTL_API_KEY"


class HTTPProvider(ConfigProvider):
    """Configuration API provider backed by the REST API."""

    # (connect, read) in seconds
    DEFAULT_TIMEOUT = (10, 60)

    def __init__(self, config: Dict, token: Optional[str] = None):
        """Initialize HTTP provider."""
        self.config = config
        self.host = config.get("host", "api.turbinelabs.io")
        self.ssl = config.get("ssl", True)
        self.port = config.get("port", 443 if self.ssl else 80)
        self.api_key = config.get("key") or os.environ.get(API_KEY_ENV, "")
        self.timeout = config.get("timeout", self.DEFAULT_TIMEOUT)

        scheme = "https" if self.ssl else "http"
        self.base_url = f"{scheme}://{self.host}:{self.port}/{API_VERSION}"

        self.session = requests.Session()
        self.session.headers.update(
            {"Content-Type": "application/json", "Accept": "application/json"}
        )
        if self.api_key:
            self.session.headers[API_KEY_HEADER] = self.api_key
        elif token:
            self.session.headers["Authorization"] = f"Bearer {token}"
        else:
            logger.warning("No API key or login token configured; requests will be anonymous")

        logger.info(f"HTTP provider initialized for {self.base_url}")

    def _url(self, object_type, key: Optional[str] = None) -> str:
        url = f"{self.base_url}/{object_type.path}"
        if key is not None:
            url += f"/{requests.utils.quote(key, safe='')}"
        return url

    def _request(self, method: str, url: str, **kwargs):
        logger.debug(f"{method} {url}")
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error(f"{method} {url} failed: {e}")
            raise ApiError(f"unable to reach {self.base_url}: {e}")

        if response.status_code >= 400:
            self._handle_api_error(response, method)

        if not response.content:
            return None
        try:
            body = response.json()
        except ValueError:
            body = None
        if not isinstance(body, dict):
            raise ApiError(f"{method} {url} returned an unexpected body: {response.text[:200]}")
        return body.get("result")

    def _handle_api_error(self, response: requests.Response, method: str) -> None:
        """Map an error response onto the error hierarchy and raise it."""
        message = f"{method} {response.url} failed with HTTP {response.status_code}"
        code = None
        details = []
        try:
            body = response.json()
            error = body.get("error") if isinstance(body, dict) else None
            if not isinstance(error, dict):
                error = {}
            message = error.get("message") or message
            code = error.get("code")
            details = error.get("details") or []
        except ValueError:
            logger.debug(f"Non-JSON error body: {response.text[:200]}")

        status = response.status_code
        logger.error(f"API error {status}: {message}")
        if status == 404:
            raise NotFoundError(message, status=status, code=code, details=details)
        if status == 409:
            raise ConflictError(message, status=status, code=code, details=details)
        if status in (400, 422):
            raise BadRequestError(message, status=status, code=code, details=details)
        raise ApiError(message, status=status, code=code, details=details)

    def create(self, object_type, record):
        """Create a new object."""
        result = self._request("POST", self._url(object_type), json=record.to_dict())
        return object_type.record_cls.from_dict(result)

    def get(self, object_type, key: str):
        """Get an object by key."""
        result = self._request("GET", self._url(object_type, key))
        if not result:
            raise NotFoundError(f"no {object_type} found for key {key}", status=404)
        return object_type.record_cls.from_dict(result)

    def modify(self, object_type, record):
        """Modify an existing object."""
        key = object_type.key_of(record)
        result = self._request("PUT", self._url(object_type, key), json=record.to_dict())
        return object_type.record_cls.from_dict(result)

    def delete(self, object_type, key: str, checksum: str) -> None:
        """Delete an object."""
        self._request("DELETE", self._url(object_type, key), params={"checksum": checksum})

    def index(self, object_type, *filters) -> List:
        """List objects matching any of the filters."""
        params = {}
        if filters:
            params["filters"] = json.dumps([f.to_dict() for f in filters])
        result = self._request("GET", self._url(object_type), params=params)
        return [object_type.record_cls.from_dict(item) for item in result or []]
