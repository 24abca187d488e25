"""HTTP client for the institution service, the core's only way to reach persistence.

Responses come back as the service's own pydantic schemas; error statuses come back as the
matching ServiceError subclass, so the core handles a typed error whatever the transport.
"""

from typing import Any, Dict, List, Optional
from uuid import UUID

import httpx

from academic_cycle.api.v1.academic_years.schemas import (
    AcademicYearCreate,
    AcademicYearResponse,
    AcademicYearUpdate,
    ArchiveAcademicYearResponse,
    CreateAcademicYearResponse,
)
from academic_cycle.api.v1.classes.schemas import ClassResponse
from academic_cycle.api.v1.institutions.schemas import InstitutionResponse
from academic_cycle.api.v1.sections.schemas import SectionCreate, SectionResponse
from academic_cycle.core.config import Settings, settings as default_settings
from academic_cycle.core.exceptions import ConflictError, NotFoundError, ServiceError, ValidationError
from academic_cycle.core.logging import get_logger

logger = get_logger(__name__)

API_PREFIX = "/api/v1/institutions"

_ERRORS_BY_STATUS = {
    400: ValidationError,
    404: NotFoundError,
    409: ConflictError,
    422: ValidationError,
}


def _detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    detail = body.get("detail") if isinstance(body, dict) else None
    if isinstance(detail, list):
        # FastAPI request validation errors
        return "; ".join(str(item.get("msg", item)) for item in detail)
    return str(detail) if detail is not None else response.reason_phrase


def raise_for_service_error(response: httpx.Response) -> None:
    if response.is_success:
        return
    error_class = _ERRORS_BY_STATUS.get(response.status_code, ServiceError)
    raise error_class(_detail(response), status_code=response.status_code)


class HttpInstitutionGateway:
    """One institution service, any number of institutions. Holds no state besides the client."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self.client = client

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "HttpInstitutionGateway":
        settings = settings or default_settings
        client = httpx.AsyncClient(base_url=settings.api_base_url, timeout=settings.request_timeout_seconds)
        return cls(client)

    async def aclose(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "HttpInstitutionGateway":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = await self.client.request(method, f"{API_PREFIX}{path}", **kwargs)
        except httpx.HTTPError as e:
            logger.warning("institution_service_unreachable", method=method, path=path, error=str(e))
            raise ServiceError(f"Institution service unreachable: {e}", status_code=503) from e
        if not response.is_success:
            logger.info("institution_service_error", method=method, path=path, status=response.status_code)
        raise_for_service_error(response)
        return response.json()

    async def get_institution(self, institution_id: UUID) -> InstitutionResponse:
        data = await self._request("GET", f"/{institution_id}")
        return InstitutionResponse.model_validate(data)

    async def list_sections(self, institution_id: UUID) -> List[SectionResponse]:
        data = await self._request("GET", f"/{institution_id}/sections")
        return [SectionResponse.model_validate(item) for item in data]

    async def create_section(self, institution_id: UUID, payload: SectionCreate) -> SectionResponse:
        data = await self._request("POST", f"/{institution_id}/sections", json=payload.model_dump(mode="json"))
        return SectionResponse.model_validate(data)

    async def create_academic_year(
        self, institution_id: UUID, payload: AcademicYearCreate
    ) -> CreateAcademicYearResponse:
        data = await self._request("POST", f"/{institution_id}/academic-years", json=payload.model_dump(mode="json"))
        return CreateAcademicYearResponse.model_validate(data)

    async def update_academic_year(
        self, institution_id: UUID, year_id: UUID, payload: AcademicYearUpdate
    ) -> AcademicYearResponse:
        body: Dict[str, Any] = payload.model_dump(mode="json", exclude_none=True)
        data = await self._request("PUT", f"/{institution_id}/academic-years/{year_id}", json=body)
        return AcademicYearResponse.model_validate(data)

    async def activate(self, institution_id: UUID, year_id: UUID) -> AcademicYearResponse:
        data = await self._request("POST", f"/{institution_id}/academic-years/{year_id}/activate")
        return AcademicYearResponse.model_validate(data)

    async def archive(self, institution_id: UUID, year_id: UUID) -> ArchiveAcademicYearResponse:
        data = await self._request("POST", f"/{institution_id}/academic-years/{year_id}/archive")
        return ArchiveAcademicYearResponse.model_validate(data)

    async def reactivate(self, institution_id: UUID, year_id: UUID) -> AcademicYearResponse:
        data = await self._request("POST", f"/{institution_id}/academic-years/{year_id}/reactivate")
        return AcademicYearResponse.model_validate(data)

    async def list_classes(self, institution_id: UUID, academic_year: Optional[str] = None) -> List[ClassResponse]:
        params = {"academic_year": academic_year} if academic_year else None
        data = await self._request("GET", f"/{institution_id}/classes", params=params)
        return [ClassResponse.model_validate(item) for item in data]
