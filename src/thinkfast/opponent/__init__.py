"""On-device AI opponent: model catalog, downloads, runtime and answering."""

from .catalog import AVAILABLE_MODELS, ModelDefinition, get_definition  # noqa: F401
from .artifacts import ArtifactStore  # noqa: F401
from .config import OpponentConfig  # noqa: F401
from .controller import (  # noqa: F401
    AIOpponentController,
    LoadState,
    OpponentAnswer,
    OpponentSnapshot,
)
from .downloader import DownloadCoordinator, DownloadPhase, DownloadState  # noqa: F401
from .errors import (  # noqa: F401
    DownloadCancelled,
    GenerationFailed,
    ModelLoadFailed,
    ModelNotLoaded,
    NetworkError,
    NotConfigured,
    OpponentError,
    OpponentSuspended,
    RuntimeUnavailable,
)
from .runtime import (  # noqa: F401
    GenerationParams,
    InferenceRuntime,
    RUNTIME_REGISTRY,
    create_runtime,
)

__all__ = [
    "AVAILABLE_MODELS",
    "ModelDefinition",
    "get_definition",
    "ArtifactStore",
    "OpponentConfig",
    "AIOpponentController",
    "LoadState",
    "OpponentAnswer",
    "OpponentSnapshot",
    "DownloadCoordinator",
    "DownloadPhase",
    "DownloadState",
    "OpponentError",
    "NotConfigured",
    "RuntimeUnavailable",
    "ModelNotLoaded",
    "ModelLoadFailed",
    "GenerationFailed",
    "NetworkError",
    "DownloadCancelled",
    "OpponentSuspended",
    "GenerationParams",
    "InferenceRuntime",
    "RUNTIME_REGISTRY",
    "create_runtime",
]
