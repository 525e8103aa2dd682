from pydantic import Field

from schemas.base import CamelModel


class EligibilityErrorSchema(CamelModel):
    field: str
    message: str


class EligibilityResult(CamelModel):
    eligible: bool
    errors: list[EligibilityErrorSchema] = Field(default_factory=list)
    bypassed: bool = False

    @property
    def rejection_reason(self) -> str:
        """All field messages joined, as stored on the loan when it is turned away."""
        return " ".join(e.message for e in self.errors)
