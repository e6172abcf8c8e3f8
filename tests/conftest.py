import asyncio
import sys
import threading
from pathlib import Path
from typing import List, Optional, Sequence

import httpx
import pytest

ROOT = Path(__file__).resolve().parent.parent
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from thinkfast.opponent.runtime import GenerationParams, InferenceRuntime  # noqa: E402
from thinkfast.trivia.models import TriviaQuestion  # noqa: E402


@pytest.fixture
def isolated_env(tmp_path, monkeypatch):
    """Point config, models and logs at a throwaway directory.

    Keeps tests away from ``~/.thinkfast`` and from ``configs/thinkfast.toml``
    in the working tree.
    """

    monkeypatch.setenv("THINKFAST_CONFIG_FILE", str(tmp_path / "missing.toml"))
    monkeypatch.setenv("THINKFAST_MODELS_DIR", str(tmp_path / "models"))
    monkeypatch.setenv("THINKFAST_LOG_DIR", str(tmp_path / "logs"))
    return tmp_path


@pytest.fixture
def capital_question():
    return TriviaQuestion(
        category="Geography",
        type="multiple",
        difficulty="medium",
        question="What is the capital of France?",
        correct_answer="Paris",
        incorrect_answers=["Berlin", "Madrid", "Rome"],
        options=["Berlin", "Paris", "Madrid", "Rome"],
    )


class GatedStream(httpx.AsyncByteStream):
    """Yield ``head`` then block until ``gate`` is set before yielding ``tail``."""

    def __init__(self, head: bytes, tail: bytes) -> None:
        self.head = head
        self.tail = tail
        self.started = asyncio.Event()
        self.gate = asyncio.Event()

    async def __aiter__(self):
        yield self.head
        self.started.set()
        await self.gate.wait()
        yield self.tail


class FakeRuntime(InferenceRuntime):
    """In-memory runtime recording how the controller drives it."""

    def __init__(
        self,
        response: Optional[str] = "2. Paris",
        *,
        fail_load: bool = False,
        events: Optional[List[str]] = None,
        name: str = "runtime",
    ) -> None:
        super().__init__()
        self.response = response
        self.fail_load = fail_load
        self.events = events if events is not None else []
        self.name = name
        self.prompts: List[str] = []
        self.stops: List[Sequence[str]] = []
        self.cleaned = False
        self.gate: Optional[threading.Event] = None
        self.started = threading.Event()

    def load_model(self, path: Path, context_length: int) -> None:
        self.events.append(f"{self.name}:load")
        if self.fail_load:
            raise ValueError("invalid GGUF magic")
        self.model_path = Path(path)

    def generate(self, prompt, params: GenerationParams, stop=()):
        self._begin_call()
        self.prompts.append(prompt)
        self.stops.append(tuple(stop))
        self.started.set()
        if self.gate is not None:
            self.gate.wait(5)
        return self.response

    def cleanup(self) -> None:
        self.events.append(f"{self.name}:cleanup")
        self.cleaned = True
        self.model_path = None


@pytest.fixture
def payload():
    return bytes(range(256)) * 8


@pytest.fixture
def make_runtime():
    return FakeRuntime


@pytest.fixture
def gated_stream():
    return GatedStream
