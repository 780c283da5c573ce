"""
HTTP adapter for the optimizer backend.

Talks to the central server's REST API with httpx. Every transport, status
and payload failure is converted into a GatewayError carrying the backend's
own error text when it sends one.
"""
import logging
from typing import Any, Dict, List, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from .base import BackendGateway
from .models import (
    Agent,
    AgentConfig,
    AvailableOptions,
    Decision,
    Instance,
    MetricsSnapshot,
    PriceHistoryPoint,
    PricingSnapshot,
    SystemHealth,
)
from ..core.config import Config
from ..core.exceptions import GatewayError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class HttpBackendGateway(BackendGateway):
    """BackendGateway over the central server's JSON API."""

    def __init__(
        self,
        base_url: str,
        api_token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the HTTP gateway

        Args:
            base_url: Backend base URL (e.g., https://optimizer.example.com)
            api_token: Optional bearer token
            timeout: Request timeout in seconds
            transport: Optional httpx transport, used by tests
        """
        self.base_url = base_url.rstrip('/')
        headers = {"Content-Type": "application/json"}
        if api_token:
            headers["Authorization"] = f"Bearer {api_token}"
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )
        logger.debug(f"Backend gateway initialized: {self.base_url}")

    @classmethod
    def from_config(cls, config: Config) -> "HttpBackendGateway":
        return cls(
            config.api_base_url,
            api_token=config.api_token,
            timeout=config.request_timeout_seconds,
        )

    async def _request(self, method: str, endpoint: str, **kwargs) -> Any:
        """Send a request and return the decoded JSON body.

        Raises:
            GatewayError: On transport failure, non-2xx status or a body
                that is not JSON
        """
        try:
            response = await self.client.request(method, endpoint, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"API Request Failed: {endpoint}: {e}")
            raise GatewayError(f"Backend unreachable: {e}", details=str(e))

        if not response.is_success:
            message = f"API Error: {response.status_code}"
            try:
                body = response.json()
                if isinstance(body, dict) and body.get("error"):
                    message = str(body["error"])
            except ValueError:
                pass
            logger.error(f"API Request Failed: {endpoint}: {message}")
            raise GatewayError(message, status_code=response.status_code, details=response.text)

        try:
            return response.json()
        except ValueError as e:
            raise GatewayError(
                f"Invalid response from {endpoint}",
                status_code=response.status_code,
                details=str(e),
            )

    def _parse(self, model: Type[ModelT], data: Any, endpoint: str) -> ModelT:
        try:
            return model.model_validate(data)
        except PydanticValidationError as e:
            raise GatewayError(f"Malformed response from {endpoint}", details=str(e))

    def _parse_list(self, model: Type[ModelT], data: Any, endpoint: str) -> List[ModelT]:
        try:
            return TypeAdapter(List[model]).validate_python(data or [])
        except PydanticValidationError as e:
            raise GatewayError(f"Malformed response from {endpoint}", details=str(e))

    # ------------------------------------------------------------------
    # Instance reads
    # ------------------------------------------------------------------

    async def get_pricing(self, instance_id: str) -> PricingSnapshot:
        endpoint = f"/api/client/instances/{instance_id}/pricing"
        return self._parse(PricingSnapshot, await self._request("GET", endpoint), endpoint)

    async def get_metrics(self, instance_id: str) -> MetricsSnapshot:
        endpoint = f"/api/client/instances/{instance_id}/metrics"
        return self._parse(MetricsSnapshot, await self._request("GET", endpoint), endpoint)

    async def get_available_options(self, instance_id: str) -> AvailableOptions:
        endpoint = f"/api/client/instances/{instance_id}/available-options"
        return self._parse(AvailableOptions, await self._request("GET", endpoint), endpoint)

    async def get_price_history(
        self, instance_id: str, days: int = 7, interval: str = "hour"
    ) -> List[PriceHistoryPoint]:
        endpoint = f"/api/client/instances/{instance_id}/price-history"
        data = await self._request("GET", endpoint, params={"days": days, "interval": interval})
        return self._parse_list(PriceHistoryPoint, data, endpoint)

    async def get_instances(
        self, client_id: str, filters: Optional[Dict[str, str]] = None
    ) -> List[Instance]:
        endpoint = f"/api/client/{client_id}/instances"
        # 'all' means no filter
        params = {k: v for k, v in (filters or {}).items() if v and v != 'all'}
        data = await self._request("GET", endpoint, params=params)
        return self._parse_list(Instance, data, endpoint)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def force_switch(self, instance_id: str, body: Dict[str, Any]) -> Dict[str, Any]:
        endpoint = f"/api/client/instances/{instance_id}/force-switch"
        logger.info(f"Queueing force switch for {instance_id}: {body}")
        return await self._request("POST", endpoint, json=body)

    # ------------------------------------------------------------------
    # Agents
    # ------------------------------------------------------------------

    async def get_agents(self, client_id: str) -> List[Agent]:
        endpoint = f"/api/client/{client_id}/agents"
        return self._parse_list(Agent, await self._request("GET", endpoint), endpoint)

    async def toggle_agent_enabled(self, agent_id: str, enabled: bool) -> Dict[str, Any]:
        return await self._request(
            "POST", f"/api/client/agents/{agent_id}/toggle-enabled", json={"enabled": enabled}
        )

    async def update_agent_settings(self, agent_id: str, settings: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request(
            "POST", f"/api/client/agents/{agent_id}/settings", json=settings
        )

    async def update_agent_config(self, agent_id: str, config: AgentConfig) -> Dict[str, Any]:
        return await self._request(
            "POST", f"/api/client/agents/{agent_id}/config", json=config.to_payload()
        )

    async def get_agent_decisions(self, client_id: str) -> List[Decision]:
        endpoint = f"/api/client/{client_id}/agents/decisions"
        return self._parse_list(Decision, await self._request("GET", endpoint), endpoint)

    # ------------------------------------------------------------------
    # System
    # ------------------------------------------------------------------

    async def get_system_health(self) -> SystemHealth:
        endpoint = "/api/admin/system-health"
        return self._parse(SystemHealth, await self._request("GET", endpoint), endpoint)

    async def health_check(self) -> Dict[str, Any]:
        return await self._request("GET", "/health")

    async def aclose(self) -> None:
        await self.client.aclose()
