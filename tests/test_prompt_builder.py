from __future__ import annotations

from ragforge.prompt_builder import (
    HOSTED_PERSONA,
    PARSER_BEHAVIOR,
    build_system_instruction,
    build_user_prompt,
    persona_directive,
    select_execution_model,
)
from ragforge.session.configuration import (
    HOSTED_ADVANCED_MODEL,
    HOSTED_DEFAULT_MODEL,
    ModelProvider,
    ParserType,
    PipelineConfig,
)
from ragforge.session.models import Role, Transcript


def test_system_instruction_narrates_configuration() -> None:
    config = PipelineConfig(chunk_size=256, overlap=32, retrieval_k=7, parser=ParserType.LANGCHAIN)

    instruction = build_system_instruction("spec.pdf", config)

    assert '- Target Document: "spec.pdf"' in instruction
    assert "- Parser Engine: LangChain (Recursive Character)" in instruction
    assert "- Chunking Strategy: 256 tokens per chunk with 32 token overlap." in instruction
    assert "- Retrieval Depth: Top-7 chunks." in instruction
    assert PARSER_BEHAVIOR[ParserType.LANGCHAIN] in instruction
    assert HOSTED_PERSONA in instruction
    assert "top 7 relevant segments" in instruction


def test_each_parser_has_its_own_behavior() -> None:
    texts = {
        parser: build_system_instruction("doc.pdf", PipelineConfig(parser=parser)) for parser in ParserType
    }

    assert "SIMULATION MODE: DOCLING" in texts[ParserType.DOCLING]
    assert "SIMULATION MODE: LANGCHAIN" in texts[ParserType.LANGCHAIN]
    assert "SIMULATION MODE: UNSTRUCTURED" in texts[ParserType.UNSTRUCTURED]


def test_open_catalog_model_is_imitated_through_persona() -> None:
    config = PipelineConfig().update(model_provider="hf", model="mistralai/Mistral-7B-Instruct-v0.2")

    directive = persona_directive(config)

    assert directive.startswith("ACT AS: mistralai/Mistral-7B-Instruct-v0.2.")
    assert "Hugging Face model" in directive
    assert select_execution_model(config) == HOSTED_DEFAULT_MODEL


def test_only_advanced_hosted_model_changes_execution_model() -> None:
    assert select_execution_model(PipelineConfig()) == HOSTED_DEFAULT_MODEL
    assert select_execution_model(PipelineConfig(model=HOSTED_ADVANCED_MODEL)) == HOSTED_ADVANCED_MODEL
    assert (
        select_execution_model(PipelineConfig(model_provider=ModelProvider.OPEN_CATALOG, model=HOSTED_ADVANCED_MODEL))
        == HOSTED_DEFAULT_MODEL
    )


def test_user_prompt_flattens_history() -> None:
    transcript = Transcript()
    transcript.append(Role.ASSISTANT, "Database ready.")
    transcript.append(Role.USER, "What is the pinout?")
    transcript.append(Role.ASSISTANT, "Pin 1 is VCC.")

    prompt = build_user_prompt(transcript.snapshot(), "And pin 2?")

    assert prompt == (
        "Here is the conversation history:\n"
        "assistant: Database ready.\n"
        "user: What is the pinout?\n"
        "assistant: Pin 1 is VCC.\n"
        "\n"
        "User: And pin 2?"
    )


def test_user_prompt_with_empty_history() -> None:
    assert build_user_prompt((), "Hello?") == "Here is the conversation history:\n\n\nUser: Hello?"
