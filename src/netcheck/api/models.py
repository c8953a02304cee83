"""
Pydantic models for NetCheck API requests and responses.

Successful scans return :class:`~netcheck.core.schema.VersionScanResult` and compliance checks
return :class:`~netcheck.core.schema.ComplianceReport` directly; only the request bodies and the
auxiliary payloads live here.
"""

from typing import (
    Any,
    Dict,
    List,
    Optional,
)

from pydantic import (
    BaseModel,
    Field,
)


# ---------------------------------------------------------------------------
# Pydantic request / response schema
# ---------------------------------------------------------------------------
class ScanRequest(BaseModel):
    """Version scan of one repository."""

    repository: str = Field(..., description="Repository identifier, e.g. 'owner/name'")
    timeout_seconds: Optional[float] = Field(
        None, gt=0, description="Time budget for the whole run (default from settings)"
    )


class ComplianceRequest(BaseModel):
    """Pull-request compliance check."""

    owner: str = Field(..., description="Repository owner")
    repository: str = Field(..., description="Repository name")
    pull_requests: Optional[List[Dict[str, Any]]] = Field(
        None, description="Pull requests to check; listed through the tool catalog when omitted"
    )
    timeout_seconds: Optional[float] = Field(None, gt=0)


class ModelStatusResponse(BaseModel):
    """Result of the model availability probe."""

    model: str
    available: bool

