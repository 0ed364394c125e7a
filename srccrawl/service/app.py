"""FastAPI reporting service over a queryable result store."""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException
from fastapi.responses import HTMLResponse, PlainTextResponse
from jinja2 import Environment, FileSystemLoader, select_autoescape
from pydantic import BaseModel

from ..models import ResultRecord
from ..stores import QueryableStore

_TEMPLATES_DIR = Path(__file__).parent / "templates"


class HealthResponse(BaseModel):
    status: str


class PackageSummary(BaseModel):
    identifier: str
    build: bool
    test: bool
    vet: int
    errcheck: int
    revision: str
    url: str

    @classmethod
    def from_record(cls, record: ResultRecord) -> "PackageSummary":
        return cls(
            identifier=record.identifier,
            build=record.build.succeeded,
            test=record.test.succeeded,
            vet=_defects(record, "vet"),
            errcheck=_defects(record, "errcheck"),
            revision=record.repository.revision.id[:10],
            url=record.repository.url,
        )


def _defects(record: ResultRecord, check: str) -> int:
    outcome = record.lint.get(check)
    return outcome.defects if outcome is not None else 0


def _build_environment() -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(_TEMPLATES_DIR)),
        autoescape=select_autoescape(["html"]),
    )
    env.filters["limit"] = lambda value, size: str(value or "")[:size]
    return env


def create_app(
    store_factory: Callable[[], QueryableStore],
    *,
    workdir: Optional[Path] = None,
) -> FastAPI:
    """Create the FastAPI application serving crawl reports."""

    store = store_factory()

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        yield
        store.close()

    app = FastAPI(title="srccrawl report", version="1.0.0", lifespan=lifespan)
    templates = _build_environment()

    def get_store() -> QueryableStore:
        return store

    def render(name: str, **context: Any) -> HTMLResponse:
        return HTMLResponse(templates.get_template(name).render(**context))

    def require(identifier: str, current: QueryableStore) -> ResultRecord:
        record = current.get(identifier)
        if record is None:
            raise HTTPException(status_code=404, detail=f"unknown package: {identifier}")
        return record

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.get("/", response_class=HTMLResponse)
    def index(current: QueryableStore = Depends(get_store)) -> HTMLResponse:
        packages = [PackageSummary.from_record(record) for record in current.list()]
        return render("index.html", packages=packages)

    @app.get("/-/repo", response_class=HTMLResponse)
    def repository(r: str, current: QueryableStore = Depends(get_store)) -> HTMLResponse:
        return render("repo.html", url=r, packages=current.by_url(r))

    @app.get("/-/api/packages", response_model=List[PackageSummary])
    def list_packages(current: QueryableStore = Depends(get_store)) -> List[PackageSummary]:
        return [PackageSummary.from_record(record) for record in current.list()]

    @app.get("/-/api/packages/{identifier:path}")
    def package_document(
        identifier: str, current: QueryableStore = Depends(get_store)
    ) -> Dict[str, Any]:
        return require(identifier, current).to_dict()

    @app.get("/-/file/{identifier:path}", response_class=PlainTextResponse)
    def source_file(
        identifier: str, name: str, current: QueryableStore = Depends(get_store)
    ) -> PlainTextResponse:
        record = require(identifier, current)
        if workdir is None or name not in record.build_info.source_files:
            raise HTTPException(status_code=404, detail=f"unknown file: {name}")
        path = workdir / "src" / Path(*identifier.split("/")) / name
        try:
            content = path.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return PlainTextResponse(content)

    @app.get("/{identifier:path}", response_class=HTMLResponse)
    def package(identifier: str, current: QueryableStore = Depends(get_store)) -> HTMLResponse:
        return render("package.html", package=require(identifier, current))

    return app


def run_service(
    store_factory: Callable[[], QueryableStore],
    *,
    host: str = "0.0.0.0",
    port: int = 8080,
    workdir: Optional[Path] = None,
) -> None:  # pragma: no cover - integration path
    import uvicorn

    app = create_app(store_factory, workdir=workdir)
    uvicorn.run(app, host=host, port=port)
