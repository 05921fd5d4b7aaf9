from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Query

from ksz import db
from ksz.api_models import ResyncResponse, StatusResponse
from ksz.controller import Controller, build_controller
from ksz.settings import settings

controller: Controller | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    global controller
    db.init_db()
    # WatchSetError here aborts startup: there is nothing to monitor.
    controller = build_controller(settings)
    controller.start()
    try:
        yield
    finally:
        controller.stop()
        controller = None


app = FastAPI(title="kubesnooze", lifespan=lifespan)


def _controller() -> Controller:
    if controller is None:
        raise HTTPException(status_code=503, detail="Controller not running")
    return controller


@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/readyz")
def readyz() -> dict[str, str]:
    if not _controller().ready:
        raise HTTPException(status_code=503, detail="Deployment watch not established")
    return {"status": "ready"}


@app.get("/status", response_model=StatusResponse)
def status() -> StatusResponse:
    c = _controller()
    return StatusResponse.from_status(c.status(), watched=[str(m) for m in c.watch_set], ready=c.ready)


@app.get("/events")
def events(limit: int = Query(50, ge=1, le=1000)) -> list[dict]:
    return db.latest_events(limit)


@app.post("/resync", response_model=ResyncResponse)
def resync() -> ResyncResponse:
    c = _controller()
    decision = c.engine.resync()
    return ResyncResponse(decision=decision, all_zero=c.tracker.all_zero)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.health_host, port=settings.health_port)
