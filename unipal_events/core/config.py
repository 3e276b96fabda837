"""
Configuration management for the UniPal Events Service.
Uses Zero Python SDK for secure configuration, with environment variables as fallback.
"""

import os
import asyncio
import concurrent.futures
from urllib.parse import quote_plus
from typing import Dict, Any, Optional
import logging
from zero_python_sdk import zero

logger = logging.getLogger(__name__)


class ZeroSecretsManager:
    """
    Zero secrets client using the official Zero Python SDK.
    Secrets live under the "unipal" namespace with hyphenated lowercase keys.
    """

    def __init__(self, zero_token: str, caller_name: str = "unipal"):
        self.zero_token = zero_token
        self.caller_name = caller_name
        self._cache: Dict[str, Any] = {}
        self._secrets = None

    async def _fetch_secrets(self):
        """Fetch secrets from Zero if not already cached."""
        if self._secrets is None:
            try:
                loop = asyncio.get_event_loop()
                with concurrent.futures.ThreadPoolExecutor() as executor:
                    self._secrets = await loop.run_in_executor(
                        executor,
                        lambda: zero(
                            token=self.zero_token,
                            pick=["unipal"],
                            caller_name=self.caller_name
                        ).fetch()
                    )
                logger.info("Successfully fetched secrets from Zero")
            except Exception as e:
                logger.error(f"Failed to fetch secrets from Zero: {e}")
                self._secrets = {}

    def _normalize_key(self, key: str) -> str:
        """Normalize a key to lowercase and replace underscores with hyphens."""
        return key.lower().replace("_", "-")

    async def get_secret(self, key: str) -> Optional[str]:
        """
        Get a secret value by key.

        Args:
            key: The secret key to retrieve

        Returns:
            Secret value or None if not found
        """
        try:
            key = self._normalize_key(key)
            if key in self._cache:
                return self._cache[key]

            await self._fetch_secrets()
            unipal_secrets = self._secrets.get("unipal", {})
            secret_value = unipal_secrets.get(key)

            if secret_value:
                self._cache[key] = secret_value

            return secret_value

        except Exception as e:
            logger.error(f"Failed to fetch secret {key}: {e}")
            return None

    async def close(self):
        """Close method for compatibility."""
        pass


class EventsConfig:
    """
    Events Service configuration manager.
    Reads from Zero when ZERO_TOKEN is set; environment variables fill any gaps.
    """

    def __init__(self):
        self.zero_token = os.getenv("ZERO_TOKEN")
        self.secrets_manager: Optional[ZeroSecretsManager] = None
        if self.zero_token:
            self.secrets_manager = ZeroSecretsManager(self.zero_token)
        else:
            logger.warning("ZERO_TOKEN not set, reading configuration from environment only")

    async def get_value(self, key: str) -> Optional[str]:
        """
        Resolve a configuration value from Zero, then the environment.

        Args:
            key: Upper-case configuration key, e.g. ``DB_HOST``

        Returns:
            Configured value or None
        """
        if self.secrets_manager:
            value = await self.secrets_manager.get_secret(key)
            if value:
                return value
        return os.getenv(key) or None

    async def get_database_url(self) -> str:
        """Get the database connection URL."""
        explicit_url = await self.get_value("DATABASE_URL")
        if explicit_url:
            return explicit_url

        host = await self.get_value("DB_HOST") or "localhost"
        port = await self.get_value("DB_PORT") or "5432"
        name = await self.get_value("DB_NAME") or "unipal"
        user = await self.get_value("DB_USER") or "unipal"
        password = await self.get_value("DB_PASSWORD") or "unipal123"

        return f"postgresql://{user}:{quote_plus(password)}@{host}:{port}/{name}"

    async def get_redis_url(self) -> str:
        """Get the Redis connection URL."""
        host = await self.get_value("REDIS_HOST") or "localhost"
        port = await self.get_value("REDIS_PORT") or "6379"
        password = await self.get_value("REDIS_PASSWORD")
        use_tls = (await self.get_value("REDIS_USE_TLS") or "").lower() in ("1", "true", "yes")

        protocol = "rediss://" if use_tls else "redis://"

        if password:
            return f"{protocol}:{password}@{host}:{port}"
        return f"{protocol}{host}:{port}"

    async def get_jwt_secret(self) -> str:
        """Get JWT secret key."""
        return await self.get_value("JWT_SECRET") or "your-secret-key-change-in-production"

    async def get_jwt_algorithm(self) -> str:
        """Get JWT algorithm."""
        return await self.get_value("JWT_ALGORITHM") or "HS256"

    async def get_cors_origins(self) -> list:
        """Get CORS allowed origins."""
        origins = await self.get_value("CORS_ORIGINS")
        if origins:
            return origins.split(",")
        return ["http://localhost:3000", "http://localhost:5173"]

    async def get_platform_name(self) -> str:
        """Name used in outgoing email subjects and signatures."""
        return await self.get_value("PLATFORM_NAME") or "UniPal MIT"

    async def get_email_config(self) -> Dict[str, Any]:
        """Get SMTP configuration for the email worker."""
        use_tls = await self.get_value("SMTP_USE_TLS") or "true"
        return {
            "smtp_host": await self.get_value("SMTP_HOST") or "localhost",
            "smtp_port": int(await self.get_value("SMTP_PORT") or "587"),
            "smtp_username": await self.get_value("SMTP_USERNAME"),
            "smtp_password": await self.get_value("SMTP_PASSWORD"),
            "smtp_use_tls": use_tls.lower() in ("1", "true", "yes"),
            "from_email": await self.get_value("FROM_EMAIL") or "noreply@unipal.local",
            "from_name": await self.get_value("FROM_NAME") or await self.get_platform_name(),
        }

    async def close(self):
        """Close the secrets manager."""
        if self.secrets_manager:
            await self.secrets_manager.close()


# Global config instance
config = EventsConfig()
