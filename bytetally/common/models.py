"""Pydantic models for bytetally."""

from pydantic import BaseModel, ConfigDict, Field


class UsageRecord(BaseModel):
    """Persisted form of the usage counter: ``{"usage": <bytes>}``."""

    model_config = ConfigDict(extra="ignore")

    usage: int = Field(..., ge=0, strict=True, description="Bytes sent so far")

    @classmethod
    def from_document(cls, data: bytes) -> "UsageRecord":
        """Parse a raw UTF-8 JSON document.

        Raises:
            ValueError: if the document is not valid JSON, is not an object,
                or has a missing/negative/non-integer ``usage`` field.
        """
        return cls.model_validate_json(data)

    def to_document(self) -> str:
        """Serialize to the on-disk JSON form."""
        return self.model_dump_json()
