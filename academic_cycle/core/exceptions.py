from typing import Dict, List, Optional

from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    default_status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code if status_code is not None else self.default_status_code


class ValidationError(ServiceError):
    """Malformed label, missing/inverted dates, invalid section name or capacity, invalid source status."""

    default_status_code = status.HTTP_400_BAD_REQUEST


class InvalidSectionName(ValidationError):
    pass


class ConflictError(ServiceError):
    """Duplicate label or section name, or activation while another year is active."""

    default_status_code = status.HTTP_409_CONFLICT


class DuplicateSectionName(ConflictError):
    pass


class NotFoundError(ServiceError):
    """Referenced institution, year or section no longer exists; reload the registry."""

    default_status_code = status.HTTP_404_NOT_FOUND


class CascadeFailure(ServiceError):
    """Archive/reactivate workflow failed; the registry keeps its last known good snapshot."""

    default_status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, cause: Optional[ServiceError] = None) -> None:
        super().__init__(message)
        self.cause = cause


class PartialBatchFailure(ServiceError):
    """Some pending sections could not be created. failures maps temp id -> error."""

    default_status_code = status.HTTP_207_MULTI_STATUS

    def __init__(self, failures: Dict[str, ServiceError], names: Optional[Dict[str, str]] = None) -> None:
        self.failures = dict(failures)
        self.names = dict(names or {})
        listed = ", ".join(self.names.get(temp_id, temp_id) for temp_id in self.failures)
        super().__init__(f"Could not create section(s): {listed}")

    @property
    def failed_names(self) -> List[str]:
        return sorted(self.names.get(temp_id, temp_id) for temp_id in self.failures)
