"""Pydantic request schemas for the LLM Benchmark API.

Nested JSON blobs keep the camelCase keys the browser client reads
(``expectedOutput``, ``modelId``, ``maxModels``...). Python code uses the
snake_case field names; dump with ``by_alias=True`` for the wire.

Routes bind a body with ``Model.model_validate(body)`` and answer a
``ValidationError`` with ``format_validation_error``. Models that list
``required_fields`` report a missing or blank field with its own message,
checked in order before field validation.
"""
from __future__ import annotations

import json
from typing import Any, ClassVar, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, dict)):
        return not value
    return False


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow", protected_namespaces=())

    required_fields: ClassVar[tuple[tuple[str, str], ...]] = ()

    @model_validator(mode="before")
    @classmethod
    def check_required_fields(cls, data: Any) -> Any:
        if isinstance(data, dict):
            for name, message in cls.required_fields:
                alias = cls.model_fields[name].alias or name
                if _is_blank(data.get(alias, data.get(name))):
                    raise ValueError(message)
        return data

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


# ──────────────────── Benchmark configuration ──────────────────────

class TestCase(_WireModel):
    __test__ = False  # not a pytest class

    id: Optional[str] = None
    name: str
    category: Optional[str] = None
    prompt: str
    expected_output: Optional[str] = Field(default=None, alias="expectedOutput")
    metadata: Optional[dict] = None

    @field_validator("name")
    @classmethod
    def name_required(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Name is required")
        return v

    @field_validator("prompt")
    @classmethod
    def prompt_required(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Prompt is required")
        return v


class ModelParameters(_WireModel):
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(default=None, gt=0)
    top_p: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    frequency_penalty: Optional[float] = Field(default=None, ge=-2.0, le=2.0)
    presence_penalty: Optional[float] = Field(default=None, ge=-2.0, le=2.0)
    stop: Optional[List[str]] = None


class ModelConfig(_WireModel):
    model_id: str = Field(..., alias="modelId")
    provider: Optional[str] = None
    enabled: bool = True
    parameters: Optional[ModelParameters] = None

    @field_validator("model_id")
    @classmethod
    def model_id_required(cls, v: str) -> str:
        if not v:
            raise ValueError("Model ID is required")
        return v


class MetricConfig(_WireModel):
    id: str
    name: str
    enabled: bool = True
    weight: Optional[float] = None


class AdvancedBenchmarkOptions(_WireModel):
    max_models: Optional[int] = Field(default=None, gt=0, alias="maxModels")
    test_case_count: Optional[int] = Field(default=None, gt=0, alias="testCaseCount")
    prioritize_cost: Optional[bool] = Field(default=None, alias="prioritizeCost")
    domain_specific: Optional[bool] = Field(default=None, alias="domainSpecific")
    include_reasoning: Optional[bool] = Field(default=None, alias="includeReasoning")


class _BenchmarkBody(_WireModel):
    """Fields shared by stored configurations and run requests."""

    required_fields = (
        ("test_cases", "Test cases are required"),
        ("model_configs", "Model configurations are required"),
    )

    id: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    benchmark_type: Literal["basic", "advanced"] = "basic"
    topic: Optional[str] = None
    advanced_options: Optional[Union[AdvancedBenchmarkOptions, dict]] = None
    test_cases: List[TestCase]
    model_configs: List[ModelConfig]
    metric_configs: Optional[List[MetricConfig]] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    public_id: Optional[str] = None

    @field_validator("test_cases", mode="before")
    @classmethod
    def decode_test_cases(cls, v: Any) -> Any:
        # Stored configs may carry test cases as a JSON string
        if isinstance(v, str):
            try:
                v = json.loads(v)
            except json.JSONDecodeError:
                raise ValueError("Test cases must be a JSON array")
        if not v:
            raise ValueError("At least one test case is required")
        return v


class BenchmarkConfig(_BenchmarkBody):
    required_fields = (
        ("name", "Configuration name is required"),
        *_BenchmarkBody.required_fields,
    )

    name: str


class BenchmarkConfigUpdate(_WireModel):
    """Partial update of a stored configuration; dump with ``exclude_unset``."""

    name: Optional[str] = None
    description: Optional[str] = None
    benchmark_type: Optional[Literal["basic", "advanced"]] = None
    topic: Optional[str] = None
    advanced_options: Optional[Union[AdvancedBenchmarkOptions, dict]] = None
    test_cases: Optional[List[TestCase]] = None
    model_configs: Optional[List[ModelConfig]] = None
    metric_configs: Optional[List[MetricConfig]] = None

    def to_updates(self) -> dict:
        return self.model_dump(by_alias=True, exclude_unset=True)


class BenchmarkRunRequest(_BenchmarkBody):
    """A configuration to run, saved or not. Test case ids are optional."""


class OpenRouterBenchmarkRequest(BenchmarkRunRequest):
    required_fields = tuple(reversed(BenchmarkRunRequest.required_fields))


# ──────────────────── OpenRouter passthrough ──────────────────────

class ChatMessage(_WireModel):
    role: Literal["system", "user", "assistant", "function"]
    content: str
    name: Optional[str] = None


class _SamplingParams(_WireModel):
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(default=None, gt=0)
    top_p: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    frequency_penalty: Optional[float] = Field(default=None, ge=-2.0, le=2.0)
    presence_penalty: Optional[float] = Field(default=None, ge=-2.0, le=2.0)
    stop: Optional[List[str]] = None

    def sampling_options(self) -> dict:
        """Sampling params and any extra keys, without the bound fields."""
        bound = set(type(self).model_fields) - set(_SamplingParams.model_fields)
        return self.model_dump(exclude=bound, exclude_none=True)


class ChatCompletionRequest(_SamplingParams):
    required_fields = (
        ("model", "Model is required"),
        ("messages", "Messages array is required"),
    )

    model: str
    messages: List[ChatMessage]


class CompletionRequest(_SamplingParams):
    required_fields = (
        ("model", "Model is required"),
        ("prompt", "Prompt is required"),
    )

    model: str
    prompt: str


class ModelTestRequest(_WireModel):
    required_fields = (
        ("model", "Model is required"),
        ("prompt", "Prompt is required"),
    )

    model: str
    prompt: str
    options: Optional[dict] = None


# ──────────────────── Advanced benchmarks ──────────────────────

class AdvancedGenerateRequest(_WireModel):
    required_fields = (("topic", "Topic is required"),)

    topic: str
    options: Optional[AdvancedBenchmarkOptions] = None


# ──────────────────── Evaluation ──────────────────────

class EvaluationRequest(_WireModel):
    required_fields = (
        ("prompt", "Prompt is required"),
        ("actual_output", "Actual output is required"),
    )

    prompt: str
    actual_output: str = Field(..., alias="actualOutput")
    expected_output: Optional[str] = Field(default=None, alias="expectedOutput")
    evaluator_model: Optional[str] = Field(default=None, alias="evaluatorModel")


class TaskEvaluationRequest(EvaluationRequest):
    required_fields = (
        ("task_type", "Task type is required"),
        *EvaluationRequest.required_fields,
    )

    task_type: str = Field(..., alias="taskType")


class BatchEvaluationRequest(_WireModel):
    required_fields = (("evaluations", "Evaluations array is required"),)

    evaluations: List[dict]
    evaluator_model: Optional[str] = Field(default=None, alias="evaluatorModel")


# ──────────────────── Ollama ──────────────────────

REACT_DIFFICULTIES = ("basic", "intermediate", "advanced", "expert")


class OllamaGenerateRequest(_WireModel):
    required_fields = (
        ("model", "Model is required"),
        ("prompt", "Prompt is required"),
    )

    model: str
    prompt: str
    parameters: Optional[dict] = None


class OllamaBenchmarkCreate(_WireModel):
    name: Optional[str] = None
    description: Optional[str] = None
    models: List[Union[str, dict]] = []
    difficulties: List[str] = []
    count: int = Field(default=5, ge=1, le=28)
    parameters: Optional[dict] = None

    @model_validator(mode="after")
    def check_models_and_difficulties(self):
        if not self.models:
            raise ValueError("At least one model is required")
        if not self.difficulties:
            raise ValueError("At least one difficulty level is required")
        unknown = [d for d in self.difficulties if d not in REACT_DIFFICULTIES]
        if unknown:
            raise ValueError(f"Unknown difficulty level: {', '.join(unknown)}")
        return self


# ──────────────────── Helpers ──────────────────────

def format_validation_error(exc: ValidationError) -> str:
    """Return the first human-readable message from a pydantic error."""
    errors = exc.errors()
    if not errors:
        return str(exc)
    msg = errors[0].get("msg", "")
    if msg.startswith("Value error, "):
        msg = msg[len("Value error, "):]
    loc = ".".join(str(x) for x in errors[0].get("loc", ()))
    if errors[0].get("type") == "value_error" or not loc:
        return msg
    return f"{loc}: {msg}"
