"""Receipt upload package."""

from expense_tracker.uploads.coordinator import (
    INVALID_SIGNING_RESPONSE,
    StagedUploadCoordinator,
)

__all__ = ["INVALID_SIGNING_RESPONSE", "StagedUploadCoordinator"]
