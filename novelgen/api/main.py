"""
FastAPI application entry point.

The worker is not started with the app; start it with POST /worker/start,
run `python -m novelgen worker` next to it, or drive it one job at a time
with POST /jobs/process-next.
"""

import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI

load_dotenv()

from novelgen import __version__
from novelgen.scheduler.service import NOVELGEN_DB_PATH

from ._service_state import init_service, shutdown_service
from .routers import jobs, projects, worker

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the service on startup; stop the worker on shutdown."""
    init_service(NOVELGEN_DB_PATH)
    logger.info(f"Novel generation API started (db: {NOVELGEN_DB_PATH})")

    yield

    shutdown_service()


tags_metadata = [
    {
        "name": "projects",
        "description": "Novel projects - create, inspect, queue outline and chapter generation",
    },
    {
        "name": "jobs",
        "description": "Generation jobs - status, cancellation, cleanup and live progress (SSE)",
    },
    {
        "name": "worker",
        "description": "Background worker control and reconciliation",
    },
]

app = FastAPI(
    title="Novel Generation API",
    lifespan=lifespan,
    description="""
## Novel Generation API

Queue-backed outline and chapter generation for long-form fiction.

### Usage
```bash
uvicorn novelgen.api.main:app --host 127.0.0.1 --port 8000

curl -X POST http://localhost:8000/projects \\
  -H "Content-Type: application/json" \\
  -d '{"title": "Ember", "premise": "A smith forges a sentient blade", "genre": "fantasy", "subgenre": "epic", "chapter_count": 12}'
```
    """,
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=tags_metadata,
)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok", "version": __version__}


app.include_router(projects.router, prefix="/projects", tags=["projects"])
app.include_router(jobs.router, prefix="/jobs", tags=["jobs"])
app.include_router(worker.router, prefix="/worker", tags=["worker"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="127.0.0.1", port=8000)
