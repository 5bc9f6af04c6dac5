"""Sources for the agent policy (AgentConfig)."""
import json
import logging
from typing import Any, Protocol, runtime_checkable

import aiohttp

from agentflow.core.config import AgentConfig, default_agent_config, parse_agent_config

logger = logging.getLogger(__name__)

# Text record holding the agent policy JSON
ENS_TEXT_KEY = "agentflow.strategy"


@runtime_checkable
class TextRecordResolver(Protocol):
    """Protocol for reading text records of a name."""

    async def get_text(self, name: str, key: str) -> str | None:
        """Return the text record `key` of `name`, or None when unset."""
        ...


@runtime_checkable
class ConfigSource(Protocol):
    """Protocol for loading an agent's policy."""

    async def load(self, name: str | None) -> AgentConfig:
        ...


class HttpTextRecordResolver:
    """Reads text records from an HTTP name-service gateway.

    GET {gateway_url}/{name}/{key} is expected to answer with a JSON object
    carrying the record under "value"; 404 means the record is unset.
    """

    def __init__(self, gateway_url: str, timeout: float = 10.0):
        self.gateway_url = gateway_url.rstrip("/")
        self.timeout = timeout

    async def get_text(self, name: str, key: str) -> str | None:
        url = f"{self.gateway_url}/{name}/{key}"
        logger.debug(
            "STEP: Resolving text record",
            extra={"extra_data": {"action": "resolve_text", "name": name, "key": key}},
        )

        timeout = aiohttp.ClientTimeout(total=self.timeout)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.get(url) as response:
                if response.status == 404:
                    return None
                if response.status != 200:
                    raise aiohttp.ClientResponseError(
                        response.request_info,
                        response.history,
                        status=response.status,
                        message=f"Gateway returned HTTP {response.status}",
                    )
                data = await response.json()

        value = data.get("value") if isinstance(data, dict) else None
        return value if value else None


class NameServiceConfigSource:
    """Loads the agent policy from a name-service text record.

    Any failure (no name, missing record, transport error, invalid JSON or
    out-of-range values) yields the default policy.
    """

    def __init__(self, resolver: TextRecordResolver, key: str = ENS_TEXT_KEY):
        self.resolver = resolver
        self.key = key

    async def load(self, name: str | None) -> AgentConfig:
        if not name:
            logger.info("No agent name configured, using default config")
            return default_agent_config()

        try:
            text = await self.resolver.get_text(name, self.key)
        except Exception as e:
            logger.warning(f"Failed to resolve {self.key} for {name}: {e}, using default config")
            return default_agent_config()

        if not text:
            logger.info(f"No {self.key} record for {name}, using default config")
            return default_agent_config()

        try:
            config = parse_agent_config(json.loads(text))
        except Exception as e:
            logger.warning(f"Invalid {self.key} record for {name}: {e}, using default config")
            return default_agent_config()

        logger.info(f"Loaded agent config {config.version} from {name}")
        return config


class StaticConfigSource:
    """Policy from an inline mapping, or the defaults."""

    def __init__(self, data: dict[str, Any] | None = None):
        self._config = parse_agent_config(data) if data is not None else default_agent_config()

    async def load(self, name: str | None) -> AgentConfig:
        return self._config
