from __future__ import annotations

"""Record schemas.

CONTRACT
- Inputs: Pydantic models
- Outputs:
  - Validated JSON-serializable records (PackageSourceInfo, ProviderErrorRecord)
- Invariants:
  - All records have schema_version int field
  - PackageSourceInfo is the only record type a set-source provider emits
- Failure:
  - Raises ValidationError on schema mismatch
"""

from typing import Any, Literal

from pydantic import BaseModel, Field

from .errors import AnySourceError, NoProviderSucceededError, OutputSinkError, ProviderError


class PackageSourceInfo(BaseModel):
    schema_version: int = 1
    name: str
    location: str = ""
    trusted: bool = False
    provider: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class ProviderErrorRecord(BaseModel):
    schema_version: int = 1
    kind: Literal[
        "PackageProviderError", "PackageSourceFailedSet", "PackageSourceOutputError", "Error"
    ]
    target: str
    provider: str | None = None
    message: str


def error_record(err: AnySourceError, target: str) -> ProviderErrorRecord:
    """Flatten a dispatch error into a reportable record."""
    if isinstance(err, ProviderError):
        return ProviderErrorRecord(
            kind="PackageProviderError", target=target, provider=err.provider, message=err.message
        )
    if isinstance(err, OutputSinkError):
        return ProviderErrorRecord(
            kind="PackageSourceOutputError", target=target, provider=err.provider, message=err.message
        )
    if isinstance(err, NoProviderSucceededError):
        return ProviderErrorRecord(kind="PackageSourceFailedSet", target=err.name, message=str(err))
    return ProviderErrorRecord(kind="Error", target=target, message=str(err))


def validate_source_info(data: dict[str, Any]) -> tuple[bool, PackageSourceInfo | None, str]:
    """Validate a stored source entry.

    Returns: (is_valid, parsed_info, error_message)
    """
    try:
        info = PackageSourceInfo(**data)
        return True, info, ""
    except Exception as e:
        return False, None, str(e)
