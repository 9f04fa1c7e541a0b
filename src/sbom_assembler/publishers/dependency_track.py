"""
Dependency-Track client for publishing assembled CycloneDX documents.
"""

import base64
import json
import logging
from typing import Any, Dict, Optional

import requests

from .. import __version__, TOOL_NAME
from ..config import OutputConfig
from ..error_handling import ConfigError, UploadError, RetryConfig, retry_with_config

logger = logging.getLogger(__name__)

BOM_ENDPOINT = "/api/v1/bom"


class ServerError(Exception):
    """A 5xx answer worth retrying."""

    def __init__(self, response: requests.Response):
        super().__init__(f"server returned {response.status_code}")
        self.response = response


class DependencyTrackPublisher:
    """
    Uploads BOMs to a Dependency-Track server.

    Connection failures and server errors are retried with exponential
    backoff; any remaining failure surfaces as an ``UploadError``.
    """

    def __init__(
        self,
        url: str,
        api_key: str,
        timeout: int = 30,
        retry_config: Optional[RetryConfig] = None,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the publisher.

        Args:
            url: Base URL of the Dependency-Track API server
            api_key: API key with BOM upload permission
            timeout: Request timeout in seconds
            retry_config: Retry policy for transient failures
            session: Session to send requests with
        """
        if not url:
            raise ConfigError("Dependency-Track url is required for upload",
                              config_section="output", config_key="url")
        if not api_key:
            raise ConfigError("Dependency-Track api key is required for upload",
                              config_section="output", config_key="api_key")

        self.url = url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "X-Api-Key": api_key,
            "Content-Type": "application/json",
            "User-Agent": f"{TOOL_NAME}/{__version__}"
        })

        retry_config = retry_config or RetryConfig(
            max_attempts=3,
            exceptions=[requests.exceptions.ConnectionError, requests.exceptions.Timeout, ServerError]
        )
        self._put_with_retry = retry_with_config(retry_config)(self._put)

    @classmethod
    def from_config(cls, output: OutputConfig, **kwargs) -> 'DependencyTrackPublisher':
        return cls(output.url, output.api_key or "", **kwargs)

    def _put(self, endpoint: str, payload: Dict[str, Any]) -> requests.Response:
        response = self.session.put(f"{self.url}{endpoint}", data=json.dumps(payload), timeout=self.timeout)
        if response.status_code >= 500:
            raise ServerError(response)
        return response

    def upload_bom(self, project_id: str, content: str) -> Dict[str, Any]:
        """
        Upload a serialized CycloneDX document to a project.

        Args:
            project_id: UUID of the target project
            content: Serialized BOM

        Returns:
            The server's JSON answer, typically holding the processing token

        Raises:
            ConfigError: If no project id is given
            UploadError: If the upload fails
        """
        if not project_id:
            raise ConfigError("Dependency-Track project id is required for upload",
                              config_section="output", config_key="upload_project_id")

        payload = {
            "project": project_id,
            "bom": base64.b64encode(content.encode("utf-8")).decode("ascii")
        }
        url = f"{self.url}{BOM_ENDPOINT}"
        logger.info(f"Uploading BOM to {url} for project {project_id}")

        try:
            response = self._put_with_retry(BOM_ENDPOINT, payload)
        except ServerError as e:
            raise UploadError(f"BOM upload failed: {e}", url=url,
                              status_code=e.response.status_code, cause=e)
        except requests.exceptions.RequestException as e:
            raise UploadError(f"BOM upload failed: {e}", url=url, cause=e)

        if not response.ok:
            message = f"BOM upload failed: {response.status_code}"
            if response.text:
                message += f" - {response.text}"
            raise UploadError(message, url=url, status_code=response.status_code)

        logger.info(f"Uploaded BOM to project {project_id}")
        try:
            return response.json() if response.content else {}
        except ValueError:
            return {}
