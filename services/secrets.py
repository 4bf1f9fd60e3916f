"""
Secret management integration
Google Secret Manager keeps the OAuth token across server restarts
"""

import asyncio
import functools
import logging
from typing import Any, Callable, Optional
from google.cloud import secretmanager
from google.api_core import exceptions

logger = logging.getLogger(__name__)

class SecretError(Exception):
    """Raised when a secret cannot be read or written"""

class SecretManager:
    """Reads and writes secrets in Google Cloud Secret Manager"""

    def __init__(self, project_id: Optional[str]):
        self.project_id = project_id
        self._client: Optional[secretmanager.SecretManagerServiceClient] = None

    def _get_client(self) -> secretmanager.SecretManagerServiceClient:
        """Get or create Secret Manager client"""
        if not self._client:
            if not self.project_id:
                raise SecretError(
                    "Google Cloud project not configured. Set GOOGLE_CLOUD_PROJECT environment variable."
                )
            self._client = secretmanager.SecretManagerServiceClient()
            logger.info("Connected to Google Cloud Secret Manager")
        return self._client

    async def _call(self, method: Callable, **kwargs) -> Any:
        """Run a blocking client call off the event loop"""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(method, **kwargs))

    def _secret_path(self, secret_name: str) -> str:
        if secret_name.startswith("projects/"):
            return secret_name
        return f"projects/{self.project_id}/secrets/{secret_name}"

    async def get_secret(self, secret_name: str, version: str = "latest") -> Optional[str]:
        """
        Get a secret value

        Args:
            secret_name: Secret name or full resource path
            version: Version of the secret to retrieve

        Returns:
            Secret value, or None if the secret does not exist yet
        """
        client = self._get_client()
        name = f"{self._secret_path(secret_name)}/versions/{version}"

        try:
            response = await self._call(client.access_secret_version, request={"name": name})
        except exceptions.NotFound:
            logger.info(f"Secret not found: {secret_name}")
            return None
        except exceptions.GoogleAPICallError as e:
            raise SecretError(f"Failed to retrieve secret '{secret_name}': {e}") from e

        logger.debug(f"Retrieved secret: {secret_name}")
        return response.payload.data.decode("UTF-8")

    async def store_secret(self, secret_name: str, secret_value: str) -> str:
        """
        Store a new version of a secret, creating the secret when needed

        Returns:
            Secret version name
        """
        client = self._get_client()
        secret_path = self._secret_path(secret_name)

        try:
            try:
                await self._call(client.create_secret, request={
                    "parent": f"projects/{self.project_id}",
                    "secret_id": secret_path.rsplit("/", 1)[-1],
                    "secret": {"replication": {"automatic": {}}}
                })
                logger.info(f"Created new secret: {secret_name}")
            except exceptions.AlreadyExists:
                logger.debug(f"Secret {secret_name} already exists, adding new version")

            response = await self._call(client.add_secret_version, request={
                "parent": secret_path,
                "payload": {"data": secret_value.encode("UTF-8")}
            })
        except exceptions.GoogleAPICallError as e:
            raise SecretError(f"Failed to store secret '{secret_name}': {e}") from e

        logger.info(f"Stored secret version: {response.name}")
        return response.name
