"""FastAPI app running lazy pipelines (filter/project/skip/take) with terminal operations over posted records."""

import datetime
import logging
from typing import Any, Callable, Dict

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from errors import PreconditionViolation, SourceLimitExceeded, UnboundedSequenceError
from models import (
    PipelineRequest, FindIndexRequest, GroupByRequest, TopKRequest, PageRequest,
    MaterializeResponse, FindIndexResponse, GroupByResponse, Group, TopKResponse,
    PageResponse, PerformanceInfo, StatusResponse, HealthResponse, ErrorResponse
)
from utils import (
    setup_logging, load_settings, build_pipeline, build_predicate, build_key,
    build_score, measure_performance, get_performance_summary, clear_performance_metrics
)

settings = load_settings()
setup_logging(settings.log_level)
logger = logging.getLogger('lazyseq.app')

app = FastAPI(
    title="Lazy Sequence Pipelines",
    description="Pull-based lazy pipelines with find-index, group-by, top-k and pagination",
    version="1.0.0"
)


class PipelineRejected(Exception):
    """A request that is well-formed but cannot be run."""

    def __init__(self, message: str, error_code: str):
        super().__init__(message)
        self.error_code = error_code


@app.exception_handler(PipelineRejected)
async def pipeline_rejected_handler(request: Request, exc: PipelineRejected):
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(
            error=str(exc),
            error_code=exc.error_code,
            timestamp=datetime.datetime.now(datetime.timezone.utc).isoformat()
        ).model_dump()
    )


def _run(operation: str, request: PipelineRequest, terminal: Callable[[Any], Any], scanning: bool = False):
    """
    Build the request's pipeline, run ``terminal`` on it, and time it.

    Range sources are capped: ``max_scan`` elements when ``scanning`` (find-index
    stops early on a match), ``max_records`` otherwise.
    """
    if request.records is not None and len(request.records) > settings.max_records:
        raise PipelineRejected(
            f"Too many records: {len(request.records)} > {settings.max_records}",
            "TOO_MANY_RECORDS"
        )
    if scanning:
        source_limit, limit_code = settings.max_scan, "SCAN_LIMIT_EXCEEDED"
    else:
        source_limit, limit_code = settings.max_records, "TOO_MANY_RECORDS"

    sequence = build_pipeline(request, source_limit=source_limit)
    try:
        result, info = measure_performance(operation, terminal, sequence)
    except SourceLimitExceeded as e:
        logger.error(f"{operation} rejected: {e}")
        raise PipelineRejected(str(e), limit_code)
    except UnboundedSequenceError as e:
        logger.error(f"{operation} rejected: {e}")
        raise PipelineRejected(str(e), "UNBOUNDED_SEQUENCE")
    except PreconditionViolation as e:
        logger.error(f"{operation} rejected: {e}")
        raise PipelineRejected(str(e), "PRECONDITION_VIOLATION")
    except (KeyError, TypeError, ValueError) as e:
        logger.error(f"{operation} failed while evaluating elements: {e}")
        raise PipelineRejected(f"Failed to evaluate pipeline: {e}", "EVALUATION_ERROR")

    logger.info(f"{operation} finished in {info['execution_time_ms']:.2f} ms")
    performance = PerformanceInfo(
        processing_time_ms=info["execution_time_ms"],
        memory_usage_mb=info["memory_usage_mb"],
        operation=operation
    )
    return result, performance


@app.get("/", response_model=StatusResponse)
async def root():
    """Basic service banner."""
    return StatusResponse(
        ok=True,
        message="Lazy sequence pipelines operational",
        timestamp=datetime.datetime.now()
    )


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Settings plus metrics health summary."""
    summary = get_performance_summary()
    return HealthResponse(
        healthy=True,
        settings=settings,
        performance_metrics=summary,
        timestamp=datetime.datetime.now()
    )


@app.post("/pipeline/materialize", response_model=MaterializeResponse)
async def materialize_pipeline(request: PipelineRequest) -> MaterializeResponse:
    """Pull every element of the pipeline. Unbounded sources need a take step."""
    items, performance = _run("materialize", request, lambda seq: seq.to_list())
    return MaterializeResponse(items=items, count=len(items), performance=performance)


@app.post("/pipeline/find-index", response_model=FindIndexResponse)
async def find_index_pipeline(request: FindIndexRequest) -> FindIndexResponse:
    """Position of the first element matching the condition."""
    predicate = build_predicate(request.condition)
    found, performance = _run(
        "find_index", request, lambda seq: seq.find_index(predicate), scanning=True
    )
    return FindIndexResponse(
        found=found.is_some(),
        index=found.unwrap_or(None),
        performance=performance
    )


@app.post("/pipeline/group-by", response_model=GroupByResponse)
async def group_by_pipeline(request: GroupByRequest) -> GroupByResponse:
    """Partition elements by key, in first-occurrence order."""
    key_fn = build_key(request.key_field)
    groups, performance = _run("group_by", request, lambda seq: seq.group_by(key_fn))
    return GroupByResponse(
        groups=[Group(key=key, items=items) for key, items in groups.items()],
        performance=performance
    )


@app.post("/pipeline/top-k", response_model=TopKResponse)
async def top_k_pipeline(request: TopKRequest) -> TopKResponse:
    """The k highest-scoring elements, descending; ties keep source order."""
    if request.k > settings.max_top_k:
        raise PipelineRejected(f"k={request.k} exceeds the limit of {settings.max_top_k}", "K_TOO_LARGE")
    score = build_score(request.score_field)
    items, performance = _run("top_k", request, lambda seq: seq.top_k(score, request.k))
    return TopKResponse(items=items, k=request.k, performance=performance)


@app.post("/pipeline/page", response_model=PageResponse)
async def page_pipeline(request: PageRequest) -> PageResponse:
    """One page of the pipeline's output (1-indexed)."""
    page_size = request.page_size or settings.default_page_size
    page_data, performance = _run(
        "page", request, lambda seq: seq.page(request.page_number, page_size).to_list()
    )
    return PageResponse(
        page_data=page_data,
        current_page=request.page_number,
        page_size=page_size,
        has_previous_page=request.page_number > 1,
        performance=performance
    )


@app.get("/metrics")
async def get_metrics() -> Dict[str, Any]:
    """Aggregate timings of terminal runs so far."""
    return get_performance_summary()


@app.delete("/metrics")
async def reset_metrics() -> Dict[str, Any]:
    clear_performance_metrics()
    return {"ok": True, "message": "Performance metrics cleared"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
