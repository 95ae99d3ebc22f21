import json
import boto3
import os
import time
from functools import wraps
from typing import Dict, Any
import logging

logger = logging.getLogger(__name__)

class SecretsManager:
    """
    Reads credentials from AWS Secrets Manager and keeps them in a short TTL
    cache so rotated secrets are picked up without a restart.
    """

    def __init__(self, region_name: str = None):
        self.region_name = region_name or os.environ.get('AWS_REGION', 'us-east-1')
        self._client = None
        self._cache = {}
        self._cache_timestamps = {}
        self._cache_ttl = 300  # seconds

    @property
    def client(self):
        """Lazy-loaded Secrets Manager client"""
        if self._client is None:
            session = boto3.session.Session()
            self._client = session.client(
                service_name='secretsmanager',
                region_name=self.region_name
            )
        return self._client

    def _time_based_cache(self, func):
        @wraps(func)
        def wrapper(secret_id: str) -> str:
            now = time.time()
            cache_key = f"{func.__name__}:{secret_id}"

            fetched_at = self._cache_timestamps.get(cache_key)
            if cache_key in self._cache and fetched_at is not None and now - fetched_at < self._cache_ttl:
                logger.debug(f"Returning cached secret for {secret_id}")
                return self._cache[cache_key]

            logger.info(f"Fetching fresh secret for {secret_id}")
            try:
                value = func(secret_id)
            except Exception as e:
                # Serve the stale value while the secret is rotating
                if cache_key in self._cache:
                    logger.warning(f"Fresh secret fetch failed for {secret_id}, using stale cache: {e}")
                    return self._cache[cache_key]
                raise
            self._cache[cache_key] = value
            self._cache_timestamps[cache_key] = now
            return value
        return wrapper

    def clear_cache(self):
        logger.info("Clearing secrets cache")
        self._cache.clear()
        self._cache_timestamps.clear()

    def get_secret(self, secret_id: str) -> str:
        """
        Get a secret value, served from the TTL cache when fresh.

        Args:
            secret_id: The secret ID or ARN

        Returns:
            The secret value as a string
        """
        @self._time_based_cache
        def _fetch_secret(secret_id: str) -> str:
            try:
                response = self.client.get_secret_value(SecretId=secret_id)
            except Exception as e:
                logger.error(f"Failed to get secret {secret_id}: {e}")
                raise
            if 'SecretBinary' in response:
                return response['SecretBinary']
            return response['SecretString']

        return _fetch_secret(secret_id)

    def get_json_secret(self, secret_id: str) -> Dict[str, Any]:
        return json.loads(self.get_secret(secret_id))

    def get_db_credentials(self) -> Dict[str, str]:
        """
        RDS-managed secret holding username, password, host, port and dbname.
        """
        return self.get_json_secret(os.environ.get('DATABASE_SECRETS_NAME', 'feed-api/database'))

    def get_api_key(self, service_name: str) -> str:
        """Get API key for a specific service"""
        return self.get_secret(f'{service_name}-api-key')
