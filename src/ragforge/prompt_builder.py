"""Compose the system instruction and request text sent to the backend."""
from __future__ import annotations

from typing import Dict, Sequence

from ragforge.session.configuration import (
    HOSTED_ADVANCED_MODEL,
    HOSTED_DEFAULT_MODEL,
    ModelProvider,
    ParserType,
    PipelineConfig,
)
from ragforge.session.models import Message

PARSER_BEHAVIOR: Dict[ParserType, str] = {
    ParserType.DOCLING: (
        "SIMULATION MODE: DOCLING. The user has chosen a layout-aware parser. "
        "Pay extreme attention to tables, headers, and document structure. "
        "If the PDF contains tables, represent them accurately in Markdown. "
        "Assume the context provided to you was extracted with high structural fidelity."
    ),
    ParserType.LANGCHAIN: (
        "SIMULATION MODE: LANGCHAIN. The user has chosen a recursive character splitter. "
        "Simulate the effect of content being split by character count. "
        "Context might be fragmented mid-sentence. Focus on text density."
    ),
    ParserType.UNSTRUCTURED: "SIMULATION MODE: UNSTRUCTURED. Focus on raw element extraction.",
}

HOSTED_PERSONA = "ACT AS: Standard Gemini Assistant (Helpful, Concise)."


def select_execution_model(config: PipelineConfig) -> str:
    """Return the model that actually runs the request.

    Only the advanced hosted tier is honoured; every other selection,
    including open-catalog models, executes on the default hosted model and
    is imitated through the persona directive.
    """

    if config.uses_advanced_model:
        return HOSTED_ADVANCED_MODEL
    return HOSTED_DEFAULT_MODEL


def persona_directive(config: PipelineConfig) -> str:
    if config.model_provider is ModelProvider.OPEN_CATALOG:
        return (
            f"ACT AS: {config.model}. Adopt the typical personality, verbosity, "
            "and formatting style of this Hugging Face model."
        )
    return HOSTED_PERSONA


def build_system_instruction(document_name: str, config: PipelineConfig) -> str:
    lines = [
        "You are an advanced RAG (Retrieval-Augmented Generation) assistant.",
        "",
        "CONFIGURATION:",
        f'- Target Document: "{document_name}"',
        f"- Parser Engine: {config.parser.value}",
        f"- Chunking Strategy: {config.chunk_size} tokens per chunk with {config.overlap} token overlap.",
        f"- Retrieval Depth: Top-{config.retrieval_k} chunks.",
        "",
        "MODEL PERSONA:",
        persona_directive(config),
        "",
        "PARSER BEHAVIOR:",
        PARSER_BEHAVIOR[config.parser],
        "",
        "INSTRUCTIONS:",
        "1. Answer questions strictly based on the content of the provided document.",
        (
            "2. If the user asks about the pipeline, explain that you are simulating a RAG system "
            f"using {config.parser.value} with {config.chunk_size}-token chunks, retrieving the "
            f"top {config.retrieval_k} relevant segments."
        ),
        (
            "3. If acting as a specific Hugging Face model, use its typical catchphrases or "
            'formatting quirks (e.g. "Here is the code:" for CodeLlama).'
        ),
        "4. Maintain a professional, technical tone suitable for a vector database admin interface.",
    ]
    return "\n".join(lines)


def render_history(history: Sequence[Message]) -> str:
    return "\n".join(f"{message.role.value}: {message.text}" for message in history)


def build_user_prompt(history: Sequence[Message], question: str) -> str:
    """Flatten the whole transcript and the new question into one text block."""

    return f"Here is the conversation history:\n{render_history(history)}\n\nUser: {question}"


__all__ = [
    "HOSTED_PERSONA",
    "PARSER_BEHAVIOR",
    "build_system_instruction",
    "build_user_prompt",
    "persona_directive",
    "render_history",
    "select_execution_model",
]
