import logging
from typing import Optional

import httpx
from pydantic import ValidationError

from skillsync.constants import FLOCAREER_API_URL, FLOCAREER_TIMEOUT
from skillsync.errors import ExternalServiceError
from skillsync.schemas import ReqDetails

logger = logging.getLogger(__name__)


class FloCareerClient:
    """
    A read-only client for the FloCareer recruiting platform.
    """

    HEADERS = {
        "Accept": "application/json",
        "User-Agent": "SkillSync/1.0",
    }

    def __init__(
        self,
        base_url: str = FLOCAREER_API_URL,
        timeout: float = FLOCAREER_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def get_req_details(self, req_id: int, user_id: int) -> ReqDetails:
        """
        Fetches the rounds, skill matrix and question pools of a requisition.
        Single attempt, no retries; redirects are treated as failures.

        Args:
            req_id (int): Requisition id on the platform.
            user_id (int): Platform user owning the requisition.
        Returns:
            ReqDetails: Parsed requisition details.
        Raises:
            ExternalServiceError: On timeouts, transport errors, non-2xx answers or bad payloads.
        """
        url = f"{self.base_url}/req-details/{req_id}/{user_id}/"
        logger.info("Fetching req details for req=%s user=%s", req_id, user_id)

        async with httpx.AsyncClient(
            headers=self.HEADERS,
            timeout=self.timeout,
            follow_redirects=False,
            transport=self.transport,
        ) as client:
            try:
                response = await client.get(url)
            except httpx.TimeoutException as e:
                raise ExternalServiceError(f"FloCareer API timed out after {self.timeout}s") from e
            except httpx.HTTPError as e:
                raise ExternalServiceError(f"FloCareer API request failed: {e}") from e

        if response.is_redirect:
            raise ExternalServiceError(f"FloCareer API redirected ({response.status_code})")
        if not response.is_success:
            logger.error("FloCareer API error: %s - %s", response.status_code, response.text[:500])
            raise ExternalServiceError(f"FloCareer API error: {response.status_code}")

        try:
            return ReqDetails.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise ExternalServiceError(f"FloCareer API returned an unreadable payload: {e}") from e
