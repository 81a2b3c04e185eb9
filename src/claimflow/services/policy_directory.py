"""Policy existence lookups against the policy service."""

import logging
from urllib.parse import quote

import httpx
from beartype import beartype

from ..core.config import Settings, get_settings
from ..core.errors import ServiceError, upstream_unavailable
from ..core.result_types import Err, Ok, Result
from ..models.claim import PolicyType

logger = logging.getLogger(__name__)


class PolicyDirectory:
    """Answers whether a policy number exists.

    ``GET {policy_service_url}/api/policies/{policy_number}`` with the policy
    type as a query parameter: 2xx means it exists, 404 means it does not.
    Without a configured URL every policy is assumed to exist.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._client = client

    @property
    def enabled(self) -> bool:
        return self._settings.policy_service_url is not None

    @beartype
    async def policy_exists(
        self, policy_number: str, policy_type: PolicyType
    ) -> Result[bool, ServiceError]:
        base_url = self._settings.policy_service_url
        if base_url is None:
            return Ok(True)

        url = f"{base_url.rstrip('/')}/api/policies/{quote(policy_number, safe='')}"
        try:
            if self._client is not None:
                response = await self._client.get(
                    url,
                    params={"policyType": policy_type.value},
                    timeout=self._settings.policy_service_timeout_seconds,
                )
            else:
                async with httpx.AsyncClient(
                    timeout=self._settings.policy_service_timeout_seconds
                ) as client:
                    response = await client.get(
                        url, params={"policyType": policy_type.value}
                    )
        except httpx.HTTPError as exc:
            logger.error("Policy lookup for %s failed: %s", policy_number, exc)
            return Err(upstream_unavailable("Policy service is unavailable"))

        if response.status_code == 404:
            return Ok(False)
        if response.is_success:
            return Ok(True)

        logger.error(
            "Policy lookup for %s returned HTTP %d", policy_number, response.status_code
        )
        return Err(upstream_unavailable("Policy service is unavailable"))
