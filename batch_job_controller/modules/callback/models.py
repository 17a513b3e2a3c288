"""
Callback payload models.
"""

from typing import List

from pydantic import BaseModel, Field, ValidationError, field_validator

from batch_job_controller.modules.kube import EVENT_TYPE_NORMAL, EVENT_TYPE_WARNING


class EventPayload(BaseModel):
    """Kubernetes event a job pod asks the controller to record on its behalf."""

    warning: bool = Field(default=False, description="Record a Warning instead of a Normal event")
    reason: str = Field(..., description="Event reason, CamelCase")
    message: str = Field(..., description="Event message, may contain %s placeholders")
    args: List[str] = Field(default_factory=list, description="Values substituted into message")

    @field_validator("reason")
    @classmethod
    def validate_reason(cls, v):
        """Kubernetes event reasons start with an uppercase letter."""
        if not v or not v[0].isupper():
            raise ValueError("first character must be uppercase")
        return v

    @property
    def event_type(self) -> str:
        return EVENT_TYPE_WARNING if self.warning else EVENT_TYPE_NORMAL


def describe_validation_error(error: ValidationError) -> str:
    """One line summary naming each failed field and rule."""
    parts = []
    for err in error.errors():
        field = ".".join(str(p) for p in err["loc"]) or "event"
        parts.append(f"'{field}' {err['msg']}")
    return "; ".join(parts)
