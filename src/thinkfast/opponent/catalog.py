"""Built-in catalog of GGUF models the opponent can run."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List


@dataclass(frozen=True)
class ModelDefinition:
    """Static description of a downloadable model artifact."""

    id: str
    name: str
    url: str
    filename: str
    context_length: int
    description: str
    size_label: str


QWEN_2_5_0_5B = ModelDefinition(
    id="qwen-0.5b",
    name="Qwen 2.5 0.5B",
    url=(
        "https://huggingface.co/Qwen/Qwen2.5-0.5B-Instruct-GGUF/resolve/main/"
        "qwen2.5-0.5b-instruct-q4_k_m.gguf"
    ),
    filename="qwen2.5-0.5b-instruct-q4_k_m.gguf",
    context_length=256,
    description="Ultra-fast 0.5B model - Lightning quick responses",
    size_label="0.4 GB",
)

TINYLLAMA_1_1B = ModelDefinition(
    id="tinyllama",
    name="TinyLlama 1.1B",
    url=(
        "https://huggingface.co/TheBloke/TinyLlama-1.1B-Chat-v1.0-GGUF/resolve/main/"
        "tinyllama-1.1b-chat-v1.0.Q4_K_M.gguf"
    ),
    filename="tinyllama-1.1b-chat-v1.0.Q4_K_M.gguf",
    context_length=256,
    description="Fast 1.1B model",
    size_label="0.7 GB",
)

QWEN_2_5_3B = ModelDefinition(
    id="qwen2.5-3b",
    name="Qwen 2.5 3B",
    url=(
        "https://huggingface.co/Qwen/Qwen2.5-3B-Instruct-GGUF/resolve/main/"
        "qwen2.5-3b-instruct-q4_k_m.gguf"
    ),
    filename="qwen2.5-3b-instruct-q4_k_m.gguf",
    context_length=256,
    description="Balanced 3B model",
    size_label="2.0 GB",
)

# Fastest model first; this is the display order.
AVAILABLE_MODELS: List[ModelDefinition] = [QWEN_2_5_0_5B, TINYLLAMA_1_1B, QWEN_2_5_3B]

_BY_ID: Dict[str, ModelDefinition] = {model.id: model for model in AVAILABLE_MODELS}


def list_models() -> List[ModelDefinition]:
    return list(AVAILABLE_MODELS)


def get_definition(model_id: str) -> ModelDefinition:
    try:
        return _BY_ID[model_id]
    except KeyError:
        raise KeyError(f"Model '{model_id}' not found in catalog") from None


__all__ = [
    "ModelDefinition",
    "AVAILABLE_MODELS",
    "list_models",
    "get_definition",
]
