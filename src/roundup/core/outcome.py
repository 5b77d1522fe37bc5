"""Best-effort failure reporting returned alongside command results."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class PipelineWarning:
    """A non-fatal failure in a step that runs after a committed change."""

    step: str
    message: str
    round_id: int | None = None
    scope: str | None = None

    def as_dict(self) -> dict[str, object]:
        return {
            "step": self.step,
            "message": self.message,
            "round_id": self.round_id,
            "scope": self.scope,
        }
