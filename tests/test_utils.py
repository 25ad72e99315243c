import pytest
from pydantic import ValidationError

from errors import SourceLimitExceeded
from lazy import LazySequence
from models import Condition, PipelineRequest, Settings
from utils import (
    build_pipeline, build_predicate, build_projection, build_score, clear_performance_metrics,
    get_field, get_performance_summary, load_settings, measure_performance
)


class TestSettings:
    """Test settings loading from the environment"""

    def test_defaults(self):
        settings = load_settings({})
        assert settings == Settings()
        assert settings.log_level == "INFO"
        assert settings.max_top_k == 1000

    def test_environment_overrides(self):
        settings = load_settings({
            "LAZYSEQ_LOG_LEVEL": "debug",
            "LAZYSEQ_MAX_RECORDS": "50",
            "LAZYSEQ_DEFAULT_PAGE_SIZE": "7",
            "UNRELATED": "ignored",
        })
        assert settings.log_level == "DEBUG"
        assert settings.max_records == 50
        assert settings.default_page_size == 7

    def test_invalid_values_rejected(self):
        with pytest.raises(ValidationError):
            load_settings({"LAZYSEQ_LOG_LEVEL": "chatty"})
        with pytest.raises(ValidationError):
            load_settings({"LAZYSEQ_MAX_TOP_K": "0"})


class TestBuilders:
    """Test declarative conditions and pipeline construction"""

    def test_get_field(self):
        assert get_field({"score": 3}, "score") == 3
        assert get_field(42, None) == 42
        with pytest.raises(KeyError):
            get_field({"score": 3}, "category")
        with pytest.raises(KeyError):
            get_field(42, "score")

    @pytest.mark.parametrize("op,value,element,expected", [
        ("eq", 3, {"v": 3}, True),
        ("ne", 3, {"v": 3}, False),
        ("gt", 2, {"v": 3}, True),
        ("ge", 3, {"v": 3}, True),
        ("lt", 3, {"v": 3}, False),
        ("le", 3, {"v": 3}, True),
        ("in", [1, 3], {"v": 3}, True),
        ("contains", "ell", {"v": "hello"}, True),
    ])
    def test_predicates(self, op, value, element, expected):
        predicate = build_predicate(Condition(field="v", op=op, value=value))
        assert predicate(element) is expected

    def test_in_requires_list(self):
        with pytest.raises(ValidationError):
            Condition(field="v", op="in", value=3)

    def test_score_must_be_numeric(self):
        score = build_score("score")
        assert score({"score": 2.5}) == 2.5
        with pytest.raises(TypeError):
            score({"score": "high"})
        with pytest.raises(TypeError):
            score({"score": True})

    def test_projection(self):
        project = build_projection(["name", "missing"])
        assert project({"name": "a", "score": 1}) == {"name": "a"}

    def test_build_pipeline_is_lazy(self):
        request = PipelineRequest(
            range={"start": 1, "step": 2},
            steps=[
                {"type": "filter", "condition": {"op": "gt", "value": 4}},
                {"type": "skip", "count": 1},
                {"type": "take", "count": 3},
            ]
        )
        sequence = build_pipeline(request)
        assert isinstance(sequence, LazySequence)
        assert sequence.bounded is True
        assert sequence.to_list() == [7, 9, 11]

    def test_build_pipeline_unbounded_without_take(self):
        sequence = build_pipeline(PipelineRequest(range={}))
        assert sequence.bounded is False

    def test_source_limit_caps_range_pulls(self):
        """A capped range fails past the limit but keeps its boundedness"""
        request = PipelineRequest(range={"start": 0}, steps=[{"type": "take", "count": 4}])
        assert build_pipeline(request, source_limit=4).to_list() == [0, 1, 2, 3]
        assert build_pipeline(PipelineRequest(range={}), source_limit=4).bounded is False

        too_far = PipelineRequest(range={"start": 0}, steps=[{"type": "take", "count": 5}])
        with pytest.raises(SourceLimitExceeded):
            build_pipeline(too_far, source_limit=4).to_list()

    def test_source_limit_ignores_posted_records(self):
        request = PipelineRequest(records=[1, 2, 3])
        assert build_pipeline(request, source_limit=1).to_list() == [1, 2, 3]

    def test_request_needs_exactly_one_source(self):
        with pytest.raises(ValidationError):
            PipelineRequest()
        with pytest.raises(ValidationError):
            PipelineRequest(records=[1], range={})

    def test_step_arguments_validated(self):
        with pytest.raises(ValidationError):
            PipelineRequest(records=[1], steps=[{"type": "take"}])
        with pytest.raises(ValidationError):
            PipelineRequest(records=[1], steps=[{"type": "project", "fields": ["bad-name"]}])


class TestPerformanceMetrics:
    """Test performance measurement helpers"""

    def test_measure_records_success(self):
        result, info = measure_performance("materialize", lambda seq: seq.to_list(), LazySequence.of([1, 2]))
        assert result == [1, 2]
        assert info["success"] is True
        assert info["result_size"] == 2
        assert info["execution_time_ms"] >= 0

        summary = get_performance_summary()
        assert summary["total_operations"] == 1
        assert summary["failed_operations"] == 0

    def test_measure_reraises_failures(self):
        def fail():
            raise RuntimeError("nope")

        with pytest.raises(RuntimeError, match="nope"):
            measure_performance("fail", fail)
        assert get_performance_summary()["failed_operations"] == 1

    def test_clear(self):
        measure_performance("noop", lambda: [])
        clear_performance_metrics()
        assert get_performance_summary()["total_operations"] == 0
