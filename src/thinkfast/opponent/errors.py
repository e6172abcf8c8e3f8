from __future__ import annotations


class OpponentError(RuntimeError):
    """Base class for failures surfaced by the AI opponent pipeline."""

    code = "opponent_error"
    default_message = "AI opponent failed."
    default_hint: str | None = None

    def __init__(self, message: str | None = None, hint: str | None = None):
        self.message = message or self.default_message
        self.hint = hint if hint is not None else self.default_hint
        super().__init__(self.message)

    def to_dict(self) -> dict:
        payload = {"error": {"type": self.code, "message": self.message}}
        if self.hint:
            payload["error"]["hint"] = self.hint
        return payload


class NotConfigured(OpponentError):
    code = "not_configured"
    default_message = "AI model is not configured. Please select a model first."


class RuntimeUnavailable(OpponentError):
    code = "runtime_unavailable"
    default_message = "AI runtime is unavailable. Please restart the app."
    default_hint = "Install the inference backend (pip install 'thinkfast[llama]')."


class ModelNotLoaded(OpponentError):
    code = "model_not_loaded"
    default_message = (
        "AI model is not loaded yet. Please wait for it to load or try "
        "selecting it again."
    )


class ModelLoadFailed(OpponentError):
    code = "model_load_failed"
    default_message = (
        "Failed to load AI model. The model file may be corrupted."
    )
    default_hint = "Delete the model and download it again."


class GenerationFailed(OpponentError):
    code = "generation_failed"
    default_message = "Failed to generate AI response. Please try again."
    default_hint = "Retry the question."


class NetworkError(OpponentError):
    code = "network_error"
    default_message = (
        "Network error while downloading model. Please check your internet "
        "connection and try again."
    )
    default_hint = "Retry the download; completed bytes are kept and resumed."


class DownloadCancelled(OpponentError):
    code = "download_cancelled"
    default_message = "Model download was cancelled."
    default_hint = "Start the download again to resume where it stopped."


class OpponentSuspended(OpponentError):
    code = "suspended"
    default_message = "AI opponent is suspended."
    default_hint = "Resume the game and try again."


def err_http_status(url: str, status_code: int) -> NetworkError:
    return NetworkError(
        f"Download of '{url}' failed with HTTP {status_code}.",
        NetworkError.default_hint,
    )


def err_model_load(path: str, reason: str | None = None) -> ModelLoadFailed:
    detail = f" ({reason})" if reason else ""
    return ModelLoadFailed(
        f"Failed to load AI model from '{path}'{detail}. "
        "The model file may be corrupted.",
    )


__all__ = [
    "OpponentError",
    "NotConfigured",
    "RuntimeUnavailable",
    "ModelNotLoaded",
    "ModelLoadFailed",
    "GenerationFailed",
    "NetworkError",
    "DownloadCancelled",
    "OpponentSuspended",
    "err_http_status",
    "err_model_load",
]
