"""
HTTP client for the two upstream providers.

- Catalog (Academy) provider: modules, exams, exam requirements. Authenticated
  with a session cookie.
- Lab provider: machine profiles and machine tags. Authenticated with a
  bearer token.

Every call is a single request/response round-trip. There is no retry and no
backoff: a failed call raises a typed exception and the runner moves on to
the next item. Pacing between calls belongs to the runner.
"""

import httpx
from typing import Dict, List, Optional, Type, TypeVar
from urllib.parse import quote
from pydantic import BaseModel, ValidationError as PydanticValidationError
from core.config import settings
from core.exceptions import (
    APIExtractionError,
    AuthenticationError,
    MalformedPayloadError,
    ResourceNotFoundError,
)
from schemas.upstream import (
    ExamData,
    ExamModule,
    ExamModulesApiResponse,
    ExamsApiResponse,
    MachineInfo,
    MachineProfileApiResponse,
    MachineTag,
    MachineTagsApiResponse,
    ModuleApiResponse,
    ModuleData,
)
import logging

logger = logging.getLogger(__name__)

ACADEMY = "academy"
LABS = "labs"

USER_AGENT = "Mozilla/5.0 (X11; Linux x86_64; rv:144.0) Gecko/20100101 Firefox/144.0"

PayloadT = TypeVar("PayloadT", bound=BaseModel)


# ============================================================================
# Request Headers
# ============================================================================

def module_request_headers(cookie: str, academy_base_url: str) -> Dict[str, str]:
    return {
        "Accept": "application/json",
        "Accept-Language": "en-US,en;q=0.5",
        "Cache-Control": "no-cache",
        "Cookie": cookie,
        "Pragma": "no-cache",
        "Referer": f"{academy_base_url}/beta/module/",
        "Sec-Fetch-Dest": "empty",
        "Sec-Fetch-Mode": "cors",
        "Sec-Fetch-Site": "same-origin",
        "User-Agent": USER_AGENT,
    }


def exam_request_headers(cookie: str, academy_base_url: str) -> Dict[str, str]:
    return {
        "Accept": "application/json, text/plain, */*",
        "Accept-Language": "en-US,en;q=0.5",
        "Cache-Control": "no-cache",
        "Cookie": cookie,
        "Pragma": "no-cache",
        "Referer": f"{academy_base_url}/academy-relations/exams/",
        "Sec-Fetch-Dest": "empty",
        "Sec-Fetch-Mode": "cors",
        "Sec-Fetch-Site": "same-origin",
        "User-Agent": USER_AGENT,
        "X-Requested-With": "XMLHttpRequest",
    }


def machine_request_headers(bearer: str) -> Dict[str, str]:
    if not bearer.lower().startswith("bearer "):
        bearer = f"Bearer {bearer}"
    return {
        "Accept": "application/json, text/plain, */*",
        "Accept-Language": "en-US,en;q=0.5",
        "Authorization": bearer,
        "Cache-Control": "no-cache",
        "Origin": "https://app.hackthebox.com",
        "Pragma": "no-cache",
        "Referer": "https://app.hackthebox.com/",
        "Sec-Fetch-Dest": "empty",
        "Sec-Fetch-Mode": "cors",
        "Sec-Fetch-Site": "same-site",
        "User-Agent": USER_AGENT,
    }


class HTBHttpClient:
    """
    Authenticated GET client for the catalog and lab providers.

    Usage:
        async with HTBHttpClient(cookie, bearer) as client:
            module = await client.fetch_module(17)

    Attributes:
        academy_base_url: Catalog provider root
        labs_base_url: Lab provider root
        timeout: Request timeout in seconds
    """

    def __init__(
        self,
        cookie: str,
        bearer: str,
        academy_base_url: Optional[str] = None,
        labs_base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None
    ):
        self.cookie = cookie or ""
        self.bearer = bearer or ""
        self.academy_base_url = (academy_base_url or settings.ACADEMY_BASE_URL).rstrip("/")
        self.labs_base_url = (labs_base_url or settings.LABS_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.HTTP_TIMEOUT
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=self.timeout)

    async def __aenter__(self) -> "HTBHttpClient":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    async def aclose(self):
        if self._owns_client:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # Request plumbing
    # ------------------------------------------------------------------

    async def _get(self, url: str, provider: str, headers: Optional[Dict[str, str]] = None) -> httpx.Response:
        """
        Issue one GET request and map failures onto the exception hierarchy.

        Raises:
            ResourceNotFoundError: HTTP 404
            AuthenticationError: HTTP 401, 403
            APIExtractionError: Any other non-2xx status or transport error
        """
        context = {"provider": provider, "api_url": url}

        try:
            response = await self._client.get(url, headers=headers, timeout=self.timeout)
        except httpx.TimeoutException as e:
            raise APIExtractionError(
                f"Request timeout for {url}",
                context={**context, "timeout": self.timeout},
                original_exception=e
            )
        except httpx.HTTPError as e:
            raise APIExtractionError(
                f"Network error for {url}",
                context=context,
                original_exception=e
            )

        if response.status_code == 404:
            raise ResourceNotFoundError(
                f"Resource not found: {url}",
                context={**context, "status_code": 404}
            )

        if response.status_code in (401, 403):
            raise AuthenticationError(
                f"Authentication failed for {url}",
                context={**context, "status_code": response.status_code}
            )

        if not response.is_success:
            raise APIExtractionError(
                f"HTTP {response.status_code} from {url}",
                context={
                    **context,
                    "status_code": response.status_code,
                    "response_body": response.text[:500]  # Truncate
                }
            )

        return response

    @staticmethod
    def _parse(response: httpx.Response, model: Type[PayloadT], url: str) -> PayloadT:
        """Decode JSON and validate it against the expected payload shape"""
        try:
            payload = response.json()
        except ValueError as e:
            raise MalformedPayloadError(
                "Failed to parse JSON response",
                context={"api_url": url, "response_body": response.text[:500]},
                original_exception=e
            )

        try:
            return model.parse_obj(payload)
        except PydanticValidationError as e:
            raise MalformedPayloadError(
                f"Unexpected payload shape for {model.__name__}",
                context={"api_url": url, "validation_errors": e.errors()},
                original_exception=e
            )

    # ------------------------------------------------------------------
    # Catalog provider
    # ------------------------------------------------------------------

    async def fetch_module(self, module_id: int) -> Optional[ModuleData]:
        """
        Fetch a module including its sections and related machines.

        Returns:
            The module, or None if the id does not exist upstream
        """
        url = f"{self.academy_base_url}/api/v2/modules/{module_id}"
        try:
            response = await self._get(url, ACADEMY, module_request_headers(self.cookie, self.academy_base_url))
        except ResourceNotFoundError:
            logger.info(f"Module {module_id} not found - skipping")
            return None

        return self._parse(response, ModuleApiResponse, url).data

    async def fetch_exams(self) -> List[ExamData]:
        """Fetch the full exam list (public endpoint, no credentials)"""
        url = f"{self.academy_base_url}/api/v2/external/public/labs/exams"
        response = await self._get(url, ACADEMY)
        return self._parse(response, ExamsApiResponse, url).data

    async def fetch_exam_modules(self, exam_id: int) -> List[ExamModule]:
        """Fetch the modules an exam requires"""
        url = f"{self.academy_base_url}/api/v2/external/public/labs/relations/exams/{exam_id}"
        response = await self._get(url, ACADEMY, exam_request_headers(self.cookie, self.academy_base_url))
        return self._parse(response, ExamModulesApiResponse, url).modules

    # ------------------------------------------------------------------
    # Lab provider
    # ------------------------------------------------------------------

    async def fetch_machine_profile(self, machine_name: str) -> Optional[MachineInfo]:
        """
        Fetch a machine profile by name.

        Returns:
            The profile, or None if the provider has no machine by that name
        """
        url = f"{self.labs_base_url}/api/v4/machine/profile/{quote(machine_name, safe='')}"
        try:
            response = await self._get(url, LABS, machine_request_headers(self.bearer))
        except ResourceNotFoundError:
            logger.warning(f"Machine profile {machine_name} not found")
            return None

        return self._parse(response, MachineProfileApiResponse, url).info

    async def fetch_machine_tags(self, machine_id: int) -> List[MachineTag]:
        """Fetch vulnerability, language and area-of-interest tags for a machine"""
        url = f"{self.labs_base_url}/api/v4/machine/tags/{machine_id}"
        response = await self._get(url, LABS, machine_request_headers(self.bearer))
        return self._parse(response, MachineTagsApiResponse, url).info

    # ------------------------------------------------------------------
    # Preflight
    # ------------------------------------------------------------------

    async def check_connectivity(self) -> Dict[str, bool]:
        """
        Probe each provider root once. Any HTTP response counts as reachable;
        only transport-level failures count as unreachable.
        """
        reachable = {}
        for provider, base_url in ((ACADEMY, self.academy_base_url), (LABS, self.labs_base_url)):
            try:
                await self._client.get(base_url, headers={"User-Agent": USER_AGENT}, timeout=self.timeout)
                reachable[provider] = True
            except httpx.HTTPError as e:
                logger.warning(f"Provider {provider} unreachable at {base_url}: {e}")
                reachable[provider] = False
        return reachable
