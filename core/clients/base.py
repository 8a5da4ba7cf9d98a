"""
Base API client for HTTP services.

Provides a reusable pattern for making HTTP requests with
consistent error handling, timeouts, and logging.
"""

import logging
from abc import ABC
from typing import Any, Collection, Dict, Optional

import httpx

from core.exceptions import AppException, ExternalServiceError, TimeoutError

logger = logging.getLogger(__name__)


class BaseAPIClient(ABC):
    """
    Abstract base class for API clients.

    Subclasses implement endpoint methods on top of ``_request`` and may
    override ``_error_for`` to map error responses to domain exceptions.

    Usage:
        class MyAPIClient(BaseAPIClient):
            async def get_resource(self, id: str) -> dict:
                return await self.get(f"/resources/{id}")
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            base_url: Base URL for all requests (e.g., "https://api.example.com")
            timeout: Request timeout in seconds (default: 30)
            headers: Default headers to include in all requests
            transport: Optional httpx transport (tests pass a MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.default_headers = headers or {}
        self.transport = transport

    def _error_for(self, response: httpx.Response, url: str, method: str) -> AppException:
        """Build the exception raised for an unexpected status code."""
        try:
            body = response.json()
        except ValueError:
            body = {}
        message = body.get("message") if isinstance(body, dict) else None
        return ExternalServiceError(
            message=message or f"API returned status {response.status_code}",
            details={"status_code": response.status_code, "url": url, "method": method},
        )

    async def _request(
        self,
        method: str,
        endpoint: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        expected_status: Collection[int] = (200,),
    ) -> Dict[str, Any]:
        """
        Make an HTTP request with standard error handling.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE, etc.)
            endpoint: API endpoint (e.g., "/users/123")
            json: JSON body for POST/PUT requests
            params: Query parameters
            headers: Additional headers (merged with defaults)
            expected_status: Status codes treated as success

        Returns:
            Parsed JSON response

        Raises:
            AppException: From ``_error_for`` if the API returns an error
            TimeoutError: If the request times out
            ExternalServiceError: On transport failures
        """
        url = f"{self.base_url}{endpoint}"
        request_headers = {**self.default_headers, **(headers or {})}

        logger.debug(f"API Request: {method} {url}")

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.request(
                    method=method,
                    url=url,
                    json=json,
                    params=params,
                    headers=request_headers,
                )
        except httpx.TimeoutException as e:
            logger.error(f"API timeout: {method} {url}")
            raise TimeoutError(
                message="API request timed out",
                details={"url": url, "method": method, "timeout": self.timeout},
            ) from e
        except httpx.RequestError as e:
            logger.error(f"API request failed: {method} {url} - {str(e)}")
            raise ExternalServiceError(
                message=f"API request failed: {str(e)}",
                details={"url": url, "method": method, "error": str(e)},
            ) from e

        if response.status_code not in expected_status:
            logger.warning(f"API error: {method} {url} returned {response.status_code}")
            raise self._error_for(response, url, method)

        try:
            return response.json()
        except ValueError as e:
            raise ExternalServiceError(
                message="API returned a non-JSON response",
                details={"url": url, "method": method, "status_code": response.status_code},
            ) from e

    async def post(
        self,
        endpoint: str,
        json: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None,
        expected_status: Collection[int] = (200,),
    ) -> Dict[str, Any]:
        """Make a POST request."""
        return await self._request(
            "POST", endpoint, json=json, headers=headers, expected_status=expected_status
        )

    async def get(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """Make a GET request."""
        return await self._request("GET", endpoint, params=params, headers=headers)
