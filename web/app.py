"""Casegen web interface: pick a recipe, stream generation logs, fetch the draft.

Usage:
    uvicorn web.app:app --reload
    # or: python -m web.app
"""

import asyncio
import json
import logging
import uuid
from collections.abc import AsyncGenerator
from contextvars import ContextVar
from typing import Any

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field
from sse_starlette.sse import EventSourceResponse

from casegen import RECIPES, build, get_profile, verify
from casegen.config import load_env_file

load_env_file()

log = logging.getLogger(__name__)

# --- Job state ---

# Each job gets a unique ID. Stores: {job_id: JobState}
_jobs: dict[str, dict[str, Any]] = {}

POLL_INTERVAL_S = 0.3

# Job id of the task (and its worker thread) currently logging.
_current_job: ContextVar[str | None] = ContextVar("casegen_job", default=None)


class CaseRequest(BaseModel):
    recipe: str | None = None
    seed: str | None = None
    overrides: dict[str, Any] = Field(default_factory=dict)


# --- App ---

app = FastAPI(title="Casegen", docs_url=None, redoc_url=None)


@app.get("/api/recipes")
async def list_recipes():
    """List available recipes."""
    return [
        {
            "id": p.recipe_id,
            "caseLevel": p.case_level,
            "label": p.label,
            "description": p.description,
            "moduleCode": p.module_code,
        }
        for p in RECIPES.values()
    ]


@app.post("/api/cases")
async def start_case(request: CaseRequest):
    """Start a generation job. Returns a job_id for SSE streaming."""
    try:
        profile = get_profile(request.recipe)
    except ValueError as e:
        raise HTTPException(400, str(e))

    job_id = str(uuid.uuid4())[:8]
    _jobs[job_id] = {
        "status": "pending",
        "recipe": profile.recipe_id,
        "log_lines": [],
        "draft": None,
        "result": None,
    }

    asyncio.create_task(_execute_job(job_id, profile.recipe_id, request.seed, request.overrides))

    return {"job_id": job_id}


async def _execute_job(
    job_id: str,
    recipe: str,
    seed: str | None,
    overrides: dict[str, Any],
):
    """Run the generator in a worker thread, capturing log output."""
    state = _jobs[job_id]
    state["status"] = "running"

    # Each task runs in its own context copy, which to_thread carries into the worker.
    _current_job.set(job_id)
    handler = _ListHandler(state["log_lines"], job_id)
    handler.setFormatter(logging.Formatter("%(message)s"))
    casegen_logger = logging.getLogger("casegen")
    casegen_logger.addHandler(handler)
    casegen_logger.setLevel(logging.INFO)

    try:
        draft = await asyncio.to_thread(build, overrides, seed=seed, profile=recipe)
        errors = verify(draft)
        plan = draft["generationPlan"]
        state["draft"] = draft
        state["result"] = {
            "caseName": draft["caseName"],
            "seed": plan["seed"],
            "yearEnd": plan["yearEnd"],
            "disbursements": len(draft["disbursements"]),
            "referenceDocuments": len(draft["referenceDocuments"]),
            "verifyErrors": errors,
        }
        state["status"] = "done"
        _append_log(state, f"\nDone: {draft['caseName']} (seed {plan['seed']})")

    except Exception as e:
        state["status"] = "error"
        _append_log(state, f"\nERROR: {e}")
        log.exception("Job %s failed", job_id)

    finally:
        casegen_logger.removeHandler(handler)


def _append_log(state: dict[str, Any], msg: str) -> None:
    state["log_lines"].append(msg)


class _ListHandler(logging.Handler):
    """Logging handler that appends one job's records to a list."""

    def __init__(self, lines: list[str], job_id: str):
        super().__init__()
        self.lines = lines
        self.job_id = job_id

    def emit(self, record: logging.LogRecord) -> None:
        if _current_job.get() != self.job_id:
            return
        self.lines.append(self.format(record))


def _job(job_id: str) -> dict[str, Any]:
    if job_id not in _jobs:
        raise HTTPException(404, "Job not found")
    return _jobs[job_id]


@app.get("/api/cases/{job_id}/stream")
async def stream_case(job_id: str):
    """SSE stream of log lines for a job."""
    state = _job(job_id)

    async def event_generator() -> AsyncGenerator[dict[str, str], None]:
        sent = 0
        while True:
            lines = state["log_lines"]
            while sent < len(lines):
                yield {"event": "log", "data": lines[sent]}
                sent += 1

            if state["status"] in ("done", "error"):
                yield {"event": "done", "data": state["status"]}
                if state["result"]:
                    yield {"event": "result", "data": json.dumps(state["result"])}
                break

            await asyncio.sleep(POLL_INTERVAL_S)

    return EventSourceResponse(event_generator())


@app.get("/api/cases/{job_id}")
async def get_case(job_id: str):
    """The finished draft for a job."""
    state = _job(job_id)
    if state["status"] == "error":
        raise HTTPException(409, "Job failed; see its log stream")
    if state["status"] != "done":
        raise HTTPException(409, "Job not finished")
    return state["draft"]


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("web.app:app", host="0.0.0.0", port=8000, reload=True)
