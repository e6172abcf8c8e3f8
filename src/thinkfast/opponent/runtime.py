"""Inference runtime adapters for local GGUF models."""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Type

from .errors import GenerationFailed, ModelNotLoaded, RuntimeUnavailable, err_model_load

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationParams:
    """Sampling settings tuned for short, fast trivia answers."""

    temperature: float = 0.7
    top_p: float = 0.9
    max_tokens: int = 50


class RuntimeBackend(str, Enum):
    """Supported runtime identifiers."""

    LLAMA_CPP = "llama_cpp"


class InferenceRuntime(ABC):
    """Capability contract for a local text-generation backend.

    Implementations are blocking; callers run them in a worker thread. ``cancel``
    may be called from any thread and must not raise.

    Each ``generate`` call takes a ticket from ``_begin_call``. A ``cancel``
    covers every call started before it; calls started afterwards are unaffected.
    """

    def __init__(self) -> None:
        self._ticket_lock = threading.Lock()
        self._issued = 0
        self._cancelled_through = 0
        self.model_path: Optional[Path] = None

    @property
    def is_loaded(self) -> bool:
        return self.model_path is not None

    @abstractmethod
    def load_model(self, path: Path, context_length: int) -> None:
        """Load ``path`` into memory, replacing any previously loaded model."""

    @abstractmethod
    def generate(
        self,
        prompt: str,
        params: GenerationParams,
        stop: Sequence[str] = (),
    ) -> Optional[str]:
        """Run one bounded completion and return the raw text."""

    def cancel(self) -> None:
        """Ask every in-flight generation to stop as soon as possible."""

        with self._ticket_lock:
            self._cancelled_through = self._issued

    @property
    def cancel_requested(self) -> bool:
        """True when the most recently started call has been cancelled."""

        return self._issued > 0 and self._cancelled_through >= self._issued

    def _begin_call(self) -> int:
        with self._ticket_lock:
            self._issued += 1
            return self._issued

    def _is_cancelled(self, ticket: int) -> bool:
        return ticket <= self._cancelled_through

    @abstractmethod
    def cleanup(self) -> None:
        """Release native resources. Safe to call more than once."""


class LlamaCppRuntime(InferenceRuntime):
    """Runs GGUF models in-process through llama-cpp-python."""

    def __init__(self, *, n_gpu_layers: int = 0, n_threads: Optional[int] = None) -> None:
        super().__init__()
        try:
            from llama_cpp import Llama
        except ImportError as exc:
            raise RuntimeUnavailable(
                "The llama.cpp runtime requires llama-cpp-python.",
            ) from exc
        self._llama_cls = Llama
        self.n_gpu_layers = n_gpu_layers
        self.n_threads = n_threads
        self._llm: Any = None
        # llama-cpp-python contexts are not thread-safe.
        self._lock = threading.Lock()

    def load_model(self, path: Path, context_length: int) -> None:
        self.cleanup()
        with self._lock:
            try:
                self._llm = self._llama_cls(
                    model_path=str(path),
                    n_ctx=context_length,
                    n_gpu_layers=self.n_gpu_layers,
                    n_threads=self.n_threads,
                    verbose=False,
                )
            except (ValueError, RuntimeError, OSError) as exc:
                raise err_model_load(str(path), str(exc)) from exc
            self.model_path = Path(path)
        logger.info("Loaded %s (n_ctx=%d)", Path(path).name, context_length)

    def generate(
        self,
        prompt: str,
        params: GenerationParams,
        stop: Sequence[str] = (),
    ) -> Optional[str]:
        if self._llm is None:
            raise ModelNotLoaded()
        ticket = self._begin_call()
        pieces = []
        with self._lock:
            if self._is_cancelled(ticket):
                raise GenerationFailed("AI response generation was cancelled.")
            try:
                stream = self._llm(
                    prompt,
                    max_tokens=params.max_tokens,
                    temperature=params.temperature,
                    top_p=params.top_p,
                    stop=list(stop) or None,
                    stream=True,
                )
                for chunk in stream:
                    if self._is_cancelled(ticket):
                        logger.info("Generation cancelled after %d chunks", len(pieces))
                        raise GenerationFailed("AI response generation was cancelled.")
                    pieces.append(chunk["choices"][0].get("text") or "")
            except GenerationFailed:
                raise
            except (ValueError, RuntimeError) as exc:
                raise GenerationFailed(f"Failed to generate AI response: {exc}") from exc
        text = "".join(pieces)
        return text or None

    def cleanup(self) -> None:
        with self._lock:
            llm = self._llm
            self._llm = None
            self.model_path = None
        if llm is None:
            return
        close = getattr(llm, "close", None)
        if callable(close):
            close()


RUNTIME_REGISTRY: Dict[RuntimeBackend, Type[InferenceRuntime]] = {
    RuntimeBackend.LLAMA_CPP: LlamaCppRuntime,
}


def create_runtime(
    backend: RuntimeBackend | str,
    *,
    runtime_options: Optional[Dict[str, Any]] = None,
) -> InferenceRuntime:
    """Instantiate the runtime adapter for the requested backend."""

    try:
        key = RuntimeBackend(backend)
    except ValueError:
        raise RuntimeUnavailable(f"Unsupported inference runtime: {backend}") from None
    runtime_cls = RUNTIME_REGISTRY[key]
    return runtime_cls(**(runtime_options or {}))


__all__ = [
    "GenerationParams",
    "RuntimeBackend",
    "InferenceRuntime",
    "LlamaCppRuntime",
    "RUNTIME_REGISTRY",
    "create_runtime",
]
