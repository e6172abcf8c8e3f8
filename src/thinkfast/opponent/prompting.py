"""Chat templates for the model families the opponent knows how to prompt."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, List, Sequence, Tuple, Union

SYSTEM_PROMPT = (
    "Answer the trivia question promptly, your response should be the number of "
    "the answer AND the answer text. No explanations."
)

# TinyLlama ignores long system instructions; it gets a single short line.
TINYLLAMA_SYSTEM_PROMPT = "You are a helpful assistant. Answer concisely."


class ModelFamily(str, Enum):
    TINYLLAMA = "tinyllama"
    QWEN = "qwen"
    PHI3 = "phi3"
    GEMMA = "gemma"
    DEFAULT = "default"


# Checked in order; "tinyllama" must win over any later, shorter marker.
_FAMILY_MARKERS: Tuple[Tuple[str, ModelFamily], ...] = (
    ("tinyllama", ModelFamily.TINYLLAMA),
    ("qwen", ModelFamily.QWEN),
    ("phi", ModelFamily.PHI3),
    ("gemma", ModelFamily.GEMMA),
)


def detect_family(filename: Union[str, Path]) -> ModelFamily:
    """Classify a model file by its name; unknown names map to ``DEFAULT``."""

    name = Path(filename).name.lower()
    for marker, family in _FAMILY_MARKERS:
        if marker in name:
            return family
    return ModelFamily.DEFAULT


@dataclass(frozen=True)
class PromptTemplate:
    family: ModelFamily
    template: str
    stop: Tuple[str, ...]
    system_prompt: str = SYSTEM_PROMPT

    def render(self, user_prompt: str) -> str:
        return self.template.format(system=self.system_prompt, user=user_prompt)


_CHATML = (
    "<|im_start|>system\n{system}\n<|im_end|>\n"
    "<|im_start|>user\n{user}\n<|im_end|>\n"
    "<|im_start|>assistant\n"
)

TEMPLATES: Dict[ModelFamily, PromptTemplate] = {
    ModelFamily.TINYLLAMA: PromptTemplate(
        family=ModelFamily.TINYLLAMA,
        template="{system}\n\nUser: {user}\nAssistant:",
        stop=("\nUser:", "</s>"),
        system_prompt=TINYLLAMA_SYSTEM_PROMPT,
    ),
    ModelFamily.QWEN: PromptTemplate(
        family=ModelFamily.QWEN,
        template=_CHATML,
        stop=("<|im_end|>", "<|im_start|>"),
    ),
    ModelFamily.PHI3: PromptTemplate(
        family=ModelFamily.PHI3,
        template="<|system|>\n{system}<|end|>\n<|user|>\n{user}<|end|>\n<|assistant|>\n",
        stop=("<|end|>", "<|user|>"),
    ),
    ModelFamily.GEMMA: PromptTemplate(
        family=ModelFamily.GEMMA,
        template=(
            "<start_of_turn>user\n{system}\n\n{user}<end_of_turn>\n"
            "<start_of_turn>model\n"
        ),
        stop=("<end_of_turn>",),
    ),
    ModelFamily.DEFAULT: PromptTemplate(
        family=ModelFamily.DEFAULT,
        template=_CHATML,
        stop=("<|im_end|>", "<|im_start|>"),
    ),
}

# Every control marker any supported family can leak into a completion.
CONTROL_TOKENS: Tuple[str, ...] = (
    "<|im_end|>",
    "<|im_start|>",
    "<|end|>",
    "<|start|>",
    "<end_of_turn>",
    "<start_of_turn>",
    "<|assistant|>",
    "<|user|>",
    "<|system|>",
    "assistant:",
    "Assistant:",
    "model:",
    "Model:",
)


def number_options(options: Sequence[str]) -> List[str]:
    return [f"{index}. {option}" for index, option in enumerate(options, start=1)]


def build_user_prompt(question: str, options: Sequence[str]) -> str:
    numbered = "\n".join(number_options(options))
    return (
        f"Question: {question}\n\n"
        f"Options:\n{numbered}\n\n"
        "Your answer (number and text):"
    )


def build_prompt(family: ModelFamily, question: str, options: Sequence[str]) -> str:
    """Render the full prompt for ``family`` with 1-based numbered ``options``."""

    template = TEMPLATES.get(family, TEMPLATES[ModelFamily.DEFAULT])
    return template.render(build_user_prompt(question, options))


def stop_tokens(family: ModelFamily) -> Tuple[str, ...]:
    return TEMPLATES.get(family, TEMPLATES[ModelFamily.DEFAULT]).stop


__all__ = [
    "SYSTEM_PROMPT",
    "ModelFamily",
    "PromptTemplate",
    "TEMPLATES",
    "CONTROL_TOKENS",
    "detect_family",
    "build_user_prompt",
    "build_prompt",
    "stop_tokens",
]
