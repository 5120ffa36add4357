"""FastAPI web application for DepScope."""

from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.responses import HTMLResponse
from pydantic import BaseModel, Field

from core.config import DEFAULT_CONCURRENCY, RunConfig
from core.crawl import graph_from_data
from core.driver import GraphDriver
from core.errors import DepScopeError
from core.log import Logger
from core.report import format_report, report_to_dict
from core.tags import RegistryTagSource, StaticTagSource

app = FastAPI(
    title="DepScope",
    description="Find shared dependencies that no single version can satisfy across projects",
    version="0.1.0",
)


class ConflictRequest(BaseModel):
    """Request model for a conflict analysis."""
    projects: list[dict]
    tags: Optional[dict[str, list[str]]] = None
    allow_prerelease: bool = False
    concurrency: int = Field(DEFAULT_CONCURRENCY, ge=1)


class ConflictResponse(BaseModel):
    """Response model for a conflict analysis."""
    unresolved: list[dict]
    resolved: dict[str, Optional[str]]
    summary: dict
    report: str


@app.get("/", response_class=HTMLResponse)
async def home():
    """Serve a short description of the API."""
    return get_index_html()


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.post("/api/conflicts", response_model=ConflictResponse)
async def find_conflicts(request: ConflictRequest):
    """Analyze a crawled project graph for unresolvable dependencies."""
    try:
        projects = graph_from_data(request.projects)
        config = RunConfig(
            allow_prerelease=request.allow_prerelease,
            concurrency=request.concurrency,
        )

        if request.tags is not None:
            tag_source = StaticTagSource(request.tags)
        else:
            tag_source = RegistryTagSource(registry_url=config.registry_url, timeout=config.timeout)

        driver = GraphDriver(tag_source, logger=Logger.silent(), concurrency=config.concurrency)
        result = await driver.run(projects, config.allow_prerelease)

        return ConflictResponse(**report_to_dict(result), report=format_report(result))

    except DepScopeError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error analyzing dependencies: {str(e)}")


def get_index_html() -> str:
    """Return the landing page HTML."""
    return """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>DepScope - Shared Dependency Conflicts</title>
    <style>
        body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', sans-serif; max-width: 760px; margin: 40px auto; color: #222; }
        code, pre { background: #f4f4f4; padding: 2px 4px; border-radius: 3px; }
        pre { padding: 12px; overflow-x: auto; }
    </style>
</head>
<body>
    <h1>DepScope</h1>
    <p>Shared Dependency Conflicts: checks whether every project's requirement for a shared
    dependency can be met by one published version, and reports who asked for what when it cannot.</p>
    <h2>POST <code>/api/conflicts</code></h2>
    <pre>{
  "projects": [
    {"name": "app", "available_tags": ["1.0.0"],
     "versions": {"1.0.0": {"dependencies": {"lib": "^1.0.0"}}}}
  ],
  "tags": {"lib": ["1.2.0", "1.0.0"]},
  "allow_prerelease": false
}</pre>
    <p>Leave out <code>tags</code> to look versions up in the package registry.
    Interactive docs live at <a href="/docs">/docs</a>.</p>
</body>
</html>"""
