"""
Configuration helpers for the embedding worker and search session.
"""

from __future__ import annotations

import os
from dataclasses import dataclass


DEFAULT_MODEL = "sentence-transformers/all-MiniLM-L6-v2"
DEFAULT_COMPONENTS = 3
DEFAULT_BATCH_SIZE = 32
DEFAULT_START_METHOD = "spawn"
DEFAULT_LOG_LEVEL = "INFO"

ENV_MODEL = "EMBEDSPACE_MODEL"
ENV_DEVICE = "EMBEDSPACE_DEVICE"
ENV_COMPONENTS = "EMBEDSPACE_COMPONENTS"
ENV_BATCH_SIZE = "EMBEDSPACE_BATCH_SIZE"
ENV_START_METHOD = "EMBEDSPACE_START_METHOD"
ENV_CORPUS_PATH = "EMBEDSPACE_CORPUS_PATH"
ENV_LOG_LEVEL = "EMBEDSPACE_LOG_LEVEL"


@dataclass(frozen=True)
class WorkerSettings:
    """Settings shipped to the worker process; must stay picklable."""

    model_name: str = DEFAULT_MODEL
    device: str | None = None
    n_components: int = DEFAULT_COMPONENTS
    batch_size: int = DEFAULT_BATCH_SIZE
    start_method: str = DEFAULT_START_METHOD
    log_level: str = DEFAULT_LOG_LEVEL


def resolve_settings(
    *,
    model_name: str | None = None,
    device: str | None = None,
    n_components: int | None = None,
    batch_size: int | None = None,
    start_method: str | None = None,
    log_level: str | None = None,
) -> WorkerSettings:
    """
    Resolve worker settings from explicit arguments, env vars, or defaults.

    Precedence:
    1) explicit argument
    2) EMBEDSPACE_* environment variable
    3) default value
    """
    components = n_components or int(
        os.getenv(ENV_COMPONENTS, str(DEFAULT_COMPONENTS))
    )
    if components < 1:
        raise ValueError(f"n_components must be positive, got {components}")
    resolved_batch = batch_size or int(
        os.getenv(ENV_BATCH_SIZE, str(DEFAULT_BATCH_SIZE))
    )
    if resolved_batch < 1:
        raise ValueError(f"batch_size must be positive, got {resolved_batch}")

    return WorkerSettings(
        model_name=model_name or os.getenv(ENV_MODEL, DEFAULT_MODEL),
        device=device or os.getenv(ENV_DEVICE) or None,
        n_components=components,
        batch_size=resolved_batch,
        start_method=start_method
        or os.getenv(ENV_START_METHOD, DEFAULT_START_METHOD),
        log_level=(log_level or os.getenv(ENV_LOG_LEVEL, DEFAULT_LOG_LEVEL)).upper(),
    )


def resolve_corpus_path(override_path: str | None = None) -> str | None:
    """Return the corpus file path from CLI override or env var, if any."""
    return override_path or os.getenv(ENV_CORPUS_PATH) or None
