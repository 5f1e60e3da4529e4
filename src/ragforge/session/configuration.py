"""Value object describing the simulated ingestion pipeline."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Final

from ragforge.errors import ConfigurationError


class ParserType(str, Enum):
    """Parsers the user can pick; only the label reaches the backend."""

    DOCLING = "Docling (Layout Aware)"
    LANGCHAIN = "LangChain (Recursive Character)"
    UNSTRUCTURED = "Unstructured.io"

    @property
    def short_name(self) -> str:
        return self.value.split(" ")[0]


class ModelProvider(str, Enum):
    HOSTED = "google"
    OPEN_CATALOG = "hf"


@dataclass(frozen=True, slots=True)
class HostedModel:
    id: str
    name: str
    description: str


@dataclass(frozen=True, slots=True)
class NumericRange:
    minimum: int
    maximum: int
    step: int

    def contains(self, value: int) -> bool:
        return self.minimum <= value <= self.maximum


HOSTED_DEFAULT_MODEL: Final[str] = "gemini-2.5-flash"
HOSTED_ADVANCED_MODEL: Final[str] = "gemini-3-pro-preview"
OPEN_CATALOG_DEFAULT_MODEL: Final[str] = "meta-llama/Meta-Llama-3-70B-Instruct"

HOSTED_MODELS: Final[tuple[HostedModel, ...]] = (
    HostedModel(HOSTED_DEFAULT_MODEL, "Gemini 2.5 Flash", "Fast, efficient, low latency"),
    HostedModel(HOSTED_ADVANCED_MODEL, "Gemini 3.0 Pro", "Complex reasoning, high accuracy"),
)

OPEN_CATALOG_PRESETS: Final[tuple[str, ...]] = (
    OPEN_CATALOG_DEFAULT_MODEL,
    "mistralai/Mistral-7B-Instruct-v0.2",
    "tiiuae/falcon-180B-chat",
    "microsoft/Phi-3-mini-4k-instruct",
)

CHUNK_SIZE_RANGE: Final[NumericRange] = NumericRange(128, 2048, 64)
OVERLAP_RANGE: Final[NumericRange] = NumericRange(0, 512, 16)
RETRIEVAL_K_RANGE: Final[NumericRange] = NumericRange(1, 20, 1)


def default_model_for(provider: ModelProvider) -> str:
    if provider is ModelProvider.HOSTED:
        return HOSTED_DEFAULT_MODEL
    return OPEN_CATALOG_DEFAULT_MODEL


@dataclass(frozen=True, slots=True)
class PipelineConfig:
    """Simulated pipeline parameters.

    Instances are immutable; edits produce a new instance through
    :meth:`update` or :meth:`with_provider`. Ranges are checked on
    construction, and ``overlap`` must stay strictly below ``chunk_size``.
    Step sizes are advisory only and are not enforced.
    """

    chunk_size: int = 512
    overlap: int = 50
    retrieval_k: int = 5
    parser: ParserType = ParserType.DOCLING
    model_provider: ModelProvider = ModelProvider.HOSTED
    model: str = field(default=HOSTED_DEFAULT_MODEL)
    generate_export: bool = True

    def __post_init__(self) -> None:
        # Accept raw enum values coming from JSON payloads.
        object.__setattr__(self, "parser", _coerce_enum(ParserType, self.parser, "parser"))
        object.__setattr__(
            self,
            "model_provider",
            _coerce_enum(ModelProvider, self.model_provider, "model_provider"),
        )
        _check_range("chunk_size", self.chunk_size, CHUNK_SIZE_RANGE)
        _check_range("overlap", self.overlap, OVERLAP_RANGE)
        _check_range("retrieval_k", self.retrieval_k, RETRIEVAL_K_RANGE)
        if self.overlap >= self.chunk_size:
            raise ConfigurationError(
                f"overlap ({self.overlap}) must be smaller than chunk_size ({self.chunk_size})"
            )

        model = (self.model or "").strip()
        if not model:
            raise ConfigurationError("model must not be empty")
        if self.model_provider is ModelProvider.HOSTED and model not in hosted_model_ids():
            raise ConfigurationError(
                f"Unknown hosted model {model!r}; expected one of {', '.join(hosted_model_ids())}"
            )
        object.__setattr__(self, "model", model)

    def with_provider(self, provider: ModelProvider | str) -> "PipelineConfig":
        """Switch provider and reset the model to that provider's default."""

        resolved = _coerce_enum(ModelProvider, provider, "model_provider")
        return replace(self, model_provider=resolved, model=default_model_for(resolved))

    def update(self, **changes: Any) -> "PipelineConfig":
        """Return a copy with ``changes`` applied.

        A provider change always resets the model identifier first, so an
        explicit ``model`` in the same update is applied on top of the new
        provider's default.
        """

        unknown = set(changes) - set(self.__dataclass_fields__)
        if unknown:
            raise ConfigurationError(f"Unknown configuration fields: {', '.join(sorted(unknown))}")

        config = self
        provider = changes.pop("model_provider", None)
        if provider is not None:
            config = config.with_provider(provider)
        return replace(config, **changes) if changes else config

    @property
    def uses_advanced_model(self) -> bool:
        return self.model_provider is ModelProvider.HOSTED and self.model == HOSTED_ADVANCED_MODEL

    def to_dict(self) -> dict[str, Any]:
        return {
            "chunk_size": self.chunk_size,
            "overlap": self.overlap,
            "retrieval_k": self.retrieval_k,
            "parser": self.parser.value,
            "model_provider": self.model_provider.value,
            "model": self.model,
            "generate_export": self.generate_export,
        }


def hosted_model_ids() -> tuple[str, ...]:
    return tuple(model.id for model in HOSTED_MODELS)


def _check_range(name: str, value: int, bounds: NumericRange) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"{name} must be an integer")
    if not bounds.contains(value):
        raise ConfigurationError(
            f"{name} must be between {bounds.minimum} and {bounds.maximum} (got {value})"
        )


def _coerce_enum(enum_type: type[Enum], value: Any, name: str) -> Any:
    if isinstance(value, enum_type):
        return value
    try:
        return enum_type(value)
    except ValueError as error:
        allowed = ", ".join(member.value for member in enum_type)
        raise ConfigurationError(f"{name} must be one of: {allowed}") from error


def catalog() -> dict[str, Any]:
    """Describe the options offered by the editing surface."""

    return {
        "parsers": [parser.value for parser in ParserType],
        "providers": [provider.value for provider in ModelProvider],
        "hosted_models": [
            {"id": model.id, "name": model.name, "description": model.description}
            for model in HOSTED_MODELS
        ],
        "open_catalog_presets": list(OPEN_CATALOG_PRESETS),
        "ranges": {
            "chunk_size": _range_dict(CHUNK_SIZE_RANGE),
            "overlap": _range_dict(OVERLAP_RANGE),
            "retrieval_k": _range_dict(RETRIEVAL_K_RANGE),
        },
    }


def _range_dict(bounds: NumericRange) -> dict[str, int]:
    return {"min": bounds.minimum, "max": bounds.maximum, "step": bounds.step}


__all__ = [
    "CHUNK_SIZE_RANGE",
    "HOSTED_ADVANCED_MODEL",
    "HOSTED_DEFAULT_MODEL",
    "HOSTED_MODELS",
    "ModelProvider",
    "OPEN_CATALOG_DEFAULT_MODEL",
    "OPEN_CATALOG_PRESETS",
    "OVERLAP_RANGE",
    "ParserType",
    "PipelineConfig",
    "RETRIEVAL_K_RANGE",
    "catalog",
    "default_model_for",
    "hosted_model_ids",
]
