"""ThinkFast trivia: on-device AI opponent pipeline."""

__version__ = "0.1.0"
