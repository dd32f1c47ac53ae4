"""Taichi runtime initialization.

Scene, material and render buffers are module-level Taichi fields created at
import time, so the runtime must be initialized before any module that
declares fields is imported. This module declares none and can be imported
first.

Example:
    >>> from src.octrace.core.runtime import init_taichi
    >>> init_taichi(cpu_max_num_threads=4)
    >>> from src.octrace.core.renderer import Renderer  # fields created now
"""

from __future__ import annotations

import logging
from typing import Any

import taichi as ti

logger = logging.getLogger(__name__)


def init_taichi(
    arch: Any = None,
    cpu_max_num_threads: int | None = None,
    random_seed: int = 0,
    **kwargs: Any,
) -> None:
    """Initialize Taichi for rendering.

    Args:
        arch: Taichi backend, e.g. ti.cpu or ti.gpu. Defaults to ti.cpu.
        cpu_max_num_threads: Size of the CPU thread pool used by parallel
            kernels. None lets Taichi use all cores.
        random_seed: Seed for Taichi's random number generator.
        **kwargs: Passed through to ti.init.

    Raises:
        ValueError: If cpu_max_num_threads is not positive.
    """
    options: dict[str, Any] = {"arch": ti.cpu if arch is None else arch, "random_seed": random_seed}
    if cpu_max_num_threads is not None:
        if cpu_max_num_threads < 1:
            raise ValueError(f"cpu_max_num_threads must be at least 1, got {cpu_max_num_threads}")
        options["cpu_max_num_threads"] = cpu_max_num_threads
    options.update(kwargs)
    ti.init(**options)
    logger.debug("Initialized Taichi with %s", options)
