from __future__ import annotations

from pydantic import BaseModel, Field

from .duration import format_duration
from .reconciler import EngineStatus


class ObservationOut(BaseModel):
    deployment: str = Field(..., description="namespace/name")
    desired_replicas: int | None = Field(None, description="spec.replicas; null when unset or deleted")
    ok: bool = Field(..., description="Whether the most recent lookup succeeded")
    observed_at: str
    error: str | None = None


class TimerOut(BaseModel):
    state: str = Field(..., description="idle|pending|fired")
    generation: int
    remaining_s: float | None = None
    fire_count: int


class StatusResponse(BaseModel):
    ready: bool
    all_zero: bool
    duration: str
    duration_s: float
    watched: list[str]
    observations: list[ObservationOut]
    timer: TimerOut

    @classmethod
    def from_status(cls, st: EngineStatus, watched: list[str], ready: bool) -> StatusResponse:
        return cls(
            ready=ready,
            all_zero=st.all_zero,
            duration=format_duration(st.duration_s),
            duration_s=st.duration_s,
            watched=watched,
            observations=[
                ObservationOut(
                    deployment=str(ident),
                    desired_replicas=obs.desired_replicas,
                    ok=obs.ok,
                    observed_at=obs.observed_at,
                    error=obs.error,
                )
                for ident, obs in sorted(st.observations.items())
            ],
            timer=TimerOut(
                state=st.timer.state.value,
                generation=st.timer.generation,
                remaining_s=st.timer.remaining_s,
                fire_count=st.timer.fire_count,
            ),
        )


class ResyncResponse(BaseModel):
    decision: str = Field(..., description="started|cancelled|unchanged")
    all_zero: bool
