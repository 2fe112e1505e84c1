from datetime import datetime, timezone

from pydantic import Field

from roofreview.models.base import CamelModel

TERMINAL_STAGES = frozenset({"v2_complete", "failed"})


class JobProgressEvent(CamelModel):
    """Coarse progress checkpoint of one pipeline run."""

    job_id: str
    status: str = "PROCESSING"
    stage: str
    progress: int = Field(..., ge=0, le=100)
    message: str = ""
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_terminal(self) -> bool:
        return self.stage in TERMINAL_STAGES
