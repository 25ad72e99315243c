"""Pydantic models for the lazy pipeline API and its settings."""

from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict
from datetime import datetime
from enum import Enum
import re


_FIELD_NAME = re.compile(r'^[a-zA-Z_][a-zA-Z0-9_]*$')


def _check_field_name(value: Optional[str]) -> Optional[str]:
    if value is not None and not _FIELD_NAME.match(value):
        raise ValueError(f"Invalid field name: {value}")
    return value


class Settings(BaseModel):
    """Service settings, normally loaded from LAZYSEQ_* environment variables."""
    log_level: str = Field("INFO", description="Root logging level")
    max_records: int = Field(10_000, description="Maximum records accepted per request", ge=1)
    max_top_k: int = Field(1_000, description="Largest k accepted by top-k", ge=1)
    default_page_size: int = Field(20, description="Page size used when none is given", ge=1)
    max_scan: int = Field(1_000_000, description="Elements find-index may pull from an unbounded source", ge=1)

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        """Accept standard logging level names in any case."""
        level = v.strip().upper()
        if level not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


class ConditionOp(str, Enum):
    """Comparison operators available to filter steps"""
    EQ = "eq"
    NE = "ne"
    GT = "gt"
    GE = "ge"
    LT = "lt"
    LE = "le"
    IN = "in"
    CONTAINS = "contains"


class Condition(BaseModel):
    """Declarative predicate over one field of an element."""
    field: Optional[str] = Field(
        None,
        description="Record field to test; null tests the element itself"
    )
    op: ConditionOp = Field(..., description="Comparison operator")
    value: Any = Field(None, description="Right-hand side of the comparison")

    @field_validator('field')
    @classmethod
    def validate_field(cls, v):
        """Field names must be plain identifiers."""
        return _check_field_name(v)

    @model_validator(mode='after')
    def validate_in_operand(self):
        """`in` needs a list to test membership against."""
        if self.op == ConditionOp.IN and not isinstance(self.value, list):
            raise ValueError("'in' conditions need a list value")
        return self


class RangeSource(BaseModel):
    """Unbounded counting source: start, start+step, start+2*step, ..."""
    start: int = Field(0, description="First value")
    step: int = Field(1, description="Increment between values")


class Step(BaseModel):
    """One lazy stage of a pipeline."""
    type: Literal["filter", "project", "skip", "take"] = Field(..., description="Stage kind")
    condition: Optional[Condition] = Field(None, description="Predicate for filter stages")
    fields: Optional[List[str]] = Field(None, description="Fields kept by project stages")
    count: Optional[int] = Field(None, description="Element count for skip/take stages", ge=0)

    @model_validator(mode='after')
    def validate_stage_arguments(self):
        """Each stage kind requires its own argument."""
        if self.type == "filter" and self.condition is None:
            raise ValueError("filter steps need a condition")
        if self.type == "project":
            if not self.fields:
                raise ValueError("project steps need at least one field")
            for name in self.fields:
                _check_field_name(name)
        if self.type in ("skip", "take") and self.count is None:
            raise ValueError(f"{self.type} steps need a count")
        return self


class PipelineRequest(BaseModel):
    """Source plus ordered lazy steps."""
    records: Optional[List[Any]] = Field(None, description="Finite source elements")
    range: Optional[RangeSource] = Field(None, description="Unbounded counting source")
    steps: List[Step] = Field(default_factory=list, description="Stages applied in order")

    @model_validator(mode='after')
    def validate_single_source(self):
        """Exactly one source must be given."""
        if (self.records is None) == (self.range is None):
            raise ValueError("Provide exactly one of 'records' or 'range'")
        return self

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "records": [
                    {"name": "a", "score": 5, "category": "x"},
                    {"name": "b", "score": 9, "category": "y"},
                ],
                "steps": [
                    {"type": "filter", "condition": {"field": "score", "op": "gt", "value": 3}},
                    {"type": "take", "count": 10},
                ],
            }
        }
    )


class FindIndexRequest(PipelineRequest):
    condition: Condition = Field(..., description="Predicate the element must satisfy")


class GroupByRequest(PipelineRequest):
    key_field: Optional[str] = Field(None, description="Field to group by; null groups by the element")

    @field_validator('key_field')
    @classmethod
    def validate_key_field(cls, v):
        return _check_field_name(v)


class TopKRequest(PipelineRequest):
    score_field: Optional[str] = Field(None, description="Numeric field to rank by; null ranks the element")
    k: int = Field(..., description="Number of elements to keep", ge=1)

    @field_validator('score_field')
    @classmethod
    def validate_score_field(cls, v):
        return _check_field_name(v)


class PageRequest(PipelineRequest):
    page_number: int = Field(1, description="1-indexed page number", ge=1)
    page_size: Optional[int] = Field(None, description="Elements per page", ge=1)


class PerformanceInfo(BaseModel):
    """Timing and memory of one terminal run."""
    processing_time_ms: float = Field(..., ge=0)
    memory_usage_mb: float = Field(..., ge=0)
    operation: str


class MaterializeResponse(BaseModel):
    ok: bool = True
    items: List[Any]
    count: int = Field(..., ge=0)
    performance: Optional[PerformanceInfo] = None


class FindIndexResponse(BaseModel):
    ok: bool = True
    found: bool
    index: Optional[int] = Field(None, description="Position of the first match, null when absent", ge=0)
    performance: Optional[PerformanceInfo] = None


class Group(BaseModel):
    key: Any
    items: List[Any]


class GroupByResponse(BaseModel):
    ok: bool = True
    groups: List[Group] = Field(..., description="Groups in first-occurrence order")
    performance: Optional[PerformanceInfo] = None


class TopKResponse(BaseModel):
    ok: bool = True
    items: List[Any] = Field(..., description="Highest-scoring elements, descending")
    k: int
    performance: Optional[PerformanceInfo] = None


class PageResponse(BaseModel):
    ok: bool = True
    page_data: List[Any]
    current_page: int
    page_size: int
    has_previous_page: bool
    performance: Optional[PerformanceInfo] = None


class StatusResponse(BaseModel):
    ok: bool = True
    message: str
    timestamp: datetime


class HealthResponse(BaseModel):
    healthy: bool
    settings: Settings
    performance_metrics: Dict[str, Any]
    timestamp: datetime


class ErrorResponse(BaseModel):
    """Error payload for rejected pipelines."""
    ok: bool = False
    error: str = Field(..., description="Error message")
    error_code: str = Field(..., description="Machine-readable error code")
    timestamp: str = Field(..., description="Error timestamp in ISO format")
