"""Model lifecycle and answering for the on-device trivia opponent.

``AIOpponentController`` is the single authority over which model is selected,
whether it is downloading, loading or ready, and which runtime handle is live.
All state changes happen on the event loop; compound operations (configure,
prepare, unload) are serialized by one ``asyncio.Lock`` while the blocking
runtime work runs in worker threads.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, List, Optional

from .artifacts import ArtifactStore
from .catalog import ModelDefinition
from .config import OpponentConfig
from .downloader import DownloadCoordinator, DownloadState, ProgressCallback
from .errors import (
    DownloadCancelled,
    GenerationFailed,
    ModelNotLoaded,
    NotConfigured,
    OpponentError,
    OpponentSuspended,
    RuntimeUnavailable,
    err_model_load,
)
from .parsing import calculate_confidence, minimum_thinking_time, parse_answer
from .prompting import ModelFamily, build_prompt, detect_family, stop_tokens
from .runtime import GenerationParams, InferenceRuntime, create_runtime
from ..trivia.models import TriviaQuestion

logger = logging.getLogger(__name__)

RuntimeFactory = Callable[[], InferenceRuntime]
SnapshotObserver = Callable[["OpponentSnapshot"], None]


class LoadState(str, Enum):
    UNLOADED = "unloaded"
    DOWNLOADING = "downloading"
    LOADING = "loading"
    READY = "ready"


@dataclass(frozen=True)
class OpponentSnapshot:
    """Read-only view of the controller for UI layers."""

    load_state: LoadState
    selected_id: Optional[str]
    is_downloading: bool
    progress: Optional[float]
    download_state: DownloadState


@dataclass(frozen=True)
class OpponentAnswer:
    answer: str
    index: int
    confidence: float
    thinking_time: float
    is_correct: bool
    raw_response: str
    match: str


class AIOpponentController:
    def __init__(
        self,
        *,
        store: ArtifactStore,
        coordinator: Optional[DownloadCoordinator] = None,
        runtime_factory: Optional[RuntimeFactory] = None,
        params: GenerationParams = GenerationParams(),
        min_thinking_time: float = 1.5,
        hard_min_thinking_time: float = 2.0,
        rng: Optional[random.Random] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.store = store
        self._owns_coordinator = coordinator is None
        self.coordinator = coordinator or DownloadCoordinator()
        self._runtime_factory = runtime_factory or (lambda: create_runtime("llama_cpp"))
        self.params = params
        self.min_thinking_time = min_thinking_time
        self.hard_min_thinking_time = hard_min_thinking_time
        self._rng = rng or random.Random()
        self._sleep = sleep
        self._clock = clock

        self._lock = asyncio.Lock()
        self._generation_lock = asyncio.Lock()
        self._selected: Optional[ModelDefinition] = None
        self._runtime: Optional[InferenceRuntime] = None
        self._family = ModelFamily.DEFAULT
        self._load_state = LoadState.UNLOADED
        self._active_download_id: Optional[str] = None
        self._progress: Optional[float] = None
        self._prepare_task: Optional["asyncio.Task[None]"] = None
        self._prepare_definition: Optional[ModelDefinition] = None
        self._progress_listeners: List[ProgressCallback] = []
        self._generation_task: Optional[asyncio.Task] = None
        self._cancelled_generation: Optional[asyncio.Task] = None
        self._suspended = False
        self._observers: List[SnapshotObserver] = []

    @classmethod
    def from_config(
        cls,
        cfg: OpponentConfig,
        *,
        runtime_factory: Optional[RuntimeFactory] = None,
    ) -> "AIOpponentController":
        coordinator = DownloadCoordinator(
            chunk_size=cfg.chunk_size,
            progress_interval=cfg.progress_interval_s,
            connect_timeout=cfg.connect_timeout_s,
            read_timeout=cfg.read_timeout_s,
        )

        def _default_factory() -> InferenceRuntime:
            return create_runtime(
                cfg.runtime, runtime_options={"n_gpu_layers": cfg.n_gpu_layers}
            )

        controller = cls(
            store=ArtifactStore(cfg.models_dir),
            coordinator=coordinator,
            runtime_factory=runtime_factory or _default_factory,
            min_thinking_time=cfg.min_thinking_time_s,
            hard_min_thinking_time=cfg.hard_min_thinking_time_s,
        )
        controller._owns_coordinator = True
        return controller

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------
    @property
    def load_state(self) -> LoadState:
        return self._load_state

    @property
    def selected(self) -> Optional[ModelDefinition]:
        return self._selected

    @property
    def is_ready(self) -> bool:
        return self._load_state is LoadState.READY

    @property
    def is_downloading(self) -> bool:
        return self._load_state is LoadState.DOWNLOADING

    @property
    def is_suspended(self) -> bool:
        return self._suspended

    def snapshot(self) -> OpponentSnapshot:
        if self._selected is not None:
            download_state = self.coordinator.state(self.store.path_for(self._selected))
        else:
            download_state = DownloadState()
        return OpponentSnapshot(
            load_state=self._load_state,
            selected_id=self._selected.id if self._selected else None,
            is_downloading=self.is_downloading,
            progress=self._progress,
            download_state=download_state,
        )

    def subscribe(self, observer: SnapshotObserver) -> Callable[[], None]:
        """Register ``observer`` for snapshot updates; returns an unsubscribe hook."""

        self._observers.append(observer)

        def _unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return _unsubscribe

    def _notify(self) -> None:
        if not self._observers:
            return
        snap = self.snapshot()
        for observer in list(self._observers):
            try:
                observer(snap)
            except Exception:  # noqa: BLE001 - observers must not break the pipeline
                logger.exception("Opponent snapshot observer failed")

    def _set_state(self, state: LoadState) -> None:
        if state is self._load_state:
            return
        logger.info(
            "Opponent %s: %s -> %s",
            self._selected.id if self._selected else "<none>",
            self._load_state.value,
            state.value,
        )
        self._load_state = state
        self._notify()

    # ------------------------------------------------------------------
    # Selection and preparation
    # ------------------------------------------------------------------
    async def configure(self, definition: ModelDefinition) -> None:
        """Select ``definition``, releasing a different model first. No I/O."""

        async with self._lock:
            current = self._selected
            if current is not None and current.id != definition.id:
                logger.info("Switching opponent model %s -> %s", current.id, definition.id)
                await self._cancel_prepare()
                self._cancel_generation()
                await self._release_runtime()
            self._selected = definition
            self._notify()

    async def prepare(self, on_progress: Optional[ProgressCallback] = None) -> None:
        """Download (if needed) and load the selected model.

        Concurrent calls for the same model share one in-flight preparation.
        Refused with ``OpponentSuspended`` while the host has suspended us.
        """

        async with self._lock:
            if self._suspended:
                raise OpponentSuspended()
            if self._load_state is LoadState.READY:
                return
            definition = self._selected
            if definition is None:
                raise NotConfigured()
            task = self._prepare_task
            preparing = self._prepare_definition
            if (
                task is not None
                and not task.done()
                and preparing is not None
                and preparing.id == definition.id
            ):
                logger.info("Model %s is already being prepared; joining", definition.name)
            else:
                if task is not None and not task.done():
                    logger.info("Cancelling preparation of %s", preparing.id if preparing else None)
                    await self._cancel_prepare()
                task = asyncio.create_task(self._prepare(definition))
                self._prepare_task = task
                self._prepare_definition = definition
                task.add_done_callback(self._prepare_done)

        if on_progress is not None:
            self._progress_listeners.append(on_progress)
        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled():
                raise DownloadCancelled("Model preparation was cancelled.") from None
            raise
        finally:
            if on_progress is not None and on_progress in self._progress_listeners:
                self._progress_listeners.remove(on_progress)

    async def _prepare(self, definition: ModelDefinition) -> None:
        runtime: Optional[InferenceRuntime] = None
        try:
            self._active_download_id = definition.id
            self._progress = 0.0
            self._set_state(LoadState.DOWNLOADING)
            path = await self.coordinator.ensure_file(
                definition.url,
                self.store.path_for(definition),
                self._on_download_progress,
            )
            self._active_download_id = None
            self._progress = None
            self._set_state(LoadState.LOADING)

            runtime = await asyncio.to_thread(self._create_runtime)
            try:
                await asyncio.to_thread(runtime.load_model, path, definition.context_length)
            except OpponentError:
                raise
            except Exception as exc:  # noqa: BLE001 - surface as a load failure
                raise err_model_load(str(path), str(exc)) from exc

            self._runtime = runtime
            self._family = detect_family(path.name)
            self._set_state(LoadState.READY)
            logger.info(
                "Model %s ready (family=%s)", definition.name, self._family.value
            )
        except BaseException:
            self._active_download_id = None
            self._progress = None
            if runtime is not None and self._runtime is not runtime:
                await self._cleanup_runtime(runtime)
            self._set_state(LoadState.UNLOADED)
            raise

    def _create_runtime(self) -> InferenceRuntime:
        try:
            return self._runtime_factory()
        except OpponentError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise RuntimeUnavailable(f"AI runtime is unavailable: {exc}") from exc

    def _prepare_done(self, task: "asyncio.Task[None]") -> None:
        if not task.cancelled():
            task.exception()
        if self._prepare_task is task:
            self._prepare_task = None
            self._prepare_definition = None

    def _on_download_progress(self, fraction: Optional[float]) -> None:
        self._progress = fraction
        for listener in list(self._progress_listeners):
            try:
                listener(fraction)
            except Exception:  # noqa: BLE001
                logger.exception("Prepare progress listener failed")
        self._notify()

    async def _cancel_prepare(self) -> None:
        task = self._prepare_task
        if task is None or task.done():
            return
        if self._prepare_definition is not None:
            self.coordinator.cancel(self.store.path_for(self._prepare_definition))
        task.cancel()
        await asyncio.wait([task])

    async def _release_runtime(self) -> None:
        runtime = self._runtime
        self._runtime = None
        self._family = ModelFamily.DEFAULT
        self._set_state(LoadState.UNLOADED)
        if runtime is not None:
            await self._cleanup_runtime(runtime)

    @staticmethod
    async def _cleanup_runtime(runtime: InferenceRuntime) -> None:
        runtime.cancel()
        await asyncio.to_thread(runtime.cleanup)

    # ------------------------------------------------------------------
    # Answering
    # ------------------------------------------------------------------
    async def ensure_and_generate_answer(self, question: TriviaQuestion) -> OpponentAnswer:
        if self._suspended:
            raise _suspended_generation()
        if self._load_state is not LoadState.READY:
            await self.prepare()
        return await self.generate_answer(question)

    async def generate_answer(self, question: TriviaQuestion) -> OpponentAnswer:
        async with self._generation_lock:
            return await self._generate(question)

    async def _generate(self, question: TriviaQuestion) -> OpponentAnswer:
        if self._selected is None:
            raise NotConfigured()
        runtime = self._runtime
        if runtime is None or self._load_state is not LoadState.READY:
            raise ModelNotLoaded()
        if self._suspended:
            raise _suspended_generation()

        options = question.decoded_options
        prompt = build_prompt(self._family, question.decoded_question, options)
        started = self._clock()

        task = asyncio.create_task(
            asyncio.to_thread(runtime.generate, prompt, self.params, stop_tokens(self._family))
        )
        self._generation_task = task
        try:
            raw = await task
        except asyncio.CancelledError:
            if self._cancelled_generation is task:
                raise GenerationFailed("AI response generation was cancelled.") from None
            raise
        except OpponentError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise GenerationFailed(f"Failed to generate AI response: {exc}") from exc
        finally:
            self._generation_task = None
            if self._cancelled_generation is task:
                self._cancelled_generation = None
        if not raw:
            raise GenerationFailed()

        parsed = parse_answer(raw, options, rng=self._rng)
        is_correct = question.is_correct(parsed.text)
        confidence = calculate_confidence(question.difficulty, is_correct, rng=self._rng)

        elapsed = self._clock() - started
        minimum = minimum_thinking_time(
            question.difficulty,
            normal=self.min_thinking_time,
            hard=self.hard_min_thinking_time,
        )
        if elapsed < minimum:
            await self._sleep(minimum - elapsed)

        return OpponentAnswer(
            answer=parsed.text,
            index=parsed.index,
            confidence=confidence,
            thinking_time=max(elapsed, minimum),
            is_correct=is_correct,
            raw_response=raw,
            match=parsed.match,
        )

    def _cancel_generation(self) -> None:
        task = self._generation_task
        if task is not None and not task.done():
            self._cancelled_generation = task
            task.cancel()
        if self._runtime is not None:
            self._runtime.cancel()

    # ------------------------------------------------------------------
    # Teardown and host lifecycle
    # ------------------------------------------------------------------
    async def unload(self) -> None:
        """Release the runtime and clear the selection. Safe when already unloaded."""

        async with self._lock:
            await self._cancel_prepare()
            self._cancel_generation()
            await self._release_runtime()
            self._selected = None
            self._progress = None
            self._notify()

    def cancel_current_operation(self) -> None:
        """Cancel in-flight download and generation. Never raises."""

        try:
            if self._load_state is LoadState.DOWNLOADING and self._selected is not None:
                self.coordinator.cancel(self.store.path_for(self._selected))
            self._cancel_generation()
        except Exception:  # noqa: BLE001 - called from lifecycle hooks
            logger.exception("Failed to cancel current opponent operation")

    def suspend(self) -> None:
        """Host is going to the background; stop touching the runtime."""

        logger.info("Opponent suspended")
        self._suspended = True
        self.cancel_current_operation()

    def resume(self) -> None:
        logger.info("Opponent resumed")
        self._suspended = False

    def is_model_downloading(self, model_id: str) -> bool:
        return self._active_download_id == model_id and self.is_downloading

    def is_model_downloaded(self, definition: ModelDefinition) -> bool:
        return self.store.is_downloaded(definition)

    def get_model_size(self, definition: ModelDefinition) -> str:
        return self.store.size_label(definition)

    async def delete_model(self, definition: ModelDefinition) -> bool:
        if self._selected is not None and self._selected.id == definition.id:
            await self.unload()
        self.coordinator.cancel(self.store.path_for(definition))
        return self.store.delete(definition)

    async def aclose(self) -> None:
        self.cancel_current_operation()
        async with self._lock:
            await self._cancel_prepare()
            await self._release_runtime()
        if self._owns_coordinator:
            await self.coordinator.aclose()


def _suspended_generation() -> GenerationFailed:
    return GenerationFailed(
        OpponentSuspended.default_message, OpponentSuspended.default_hint
    )


__all__ = [
    "AIOpponentController",
    "LoadState",
    "OpponentAnswer",
    "OpponentSnapshot",
]
