from __future__ import annotations

from dataclasses import dataclass


@dataclass
class OpponentConfig:
    # Storage
    models_dir: str = "~/.thinkfast/models"
    default_model_id: str = "qwen-0.5b"
    # Download transport
    connect_timeout_s: float = 30.0
    read_timeout_s: float = 300.0
    chunk_size: int = 64 * 1024
    progress_interval_s: float = 0.25
    # Inference runtime
    runtime: str = "llama_cpp"
    n_gpu_layers: int = 0
    # Gameplay pacing
    min_thinking_time_s: float = 1.5
    hard_min_thinking_time_s: float = 2.0
    # Trivia question source
    trivia_base_url: str = "https://opentdb.com/api.php"
    trivia_timeout_s: float = 15.0
    config_file_path: str | None = None

    @classmethod
    def load(cls) -> "OpponentConfig":
        from .config_loader import load_opponent_config

        return load_opponent_config()
