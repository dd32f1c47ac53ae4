"""Tests for Taichi runtime initialization and kernel module loading.

Only the argument checks of init_taichi are exercised: calling ti.init again
would invalidate the fields created by the session fixture.
"""

import importlib

import pytest

# Modules that define @ti.kernel functions at import time
KERNEL_MODULES = [
    "src.octrace.scene.geometry",
    "src.octrace.scene.octree",
    "src.octrace.scene.intersection",
    "src.octrace.core.renderer",
]


@pytest.mark.parametrize("threads", [0, -2])
def test_invalid_thread_count(threads):
    from src.octrace.core.runtime import init_taichi

    with pytest.raises(ValueError, match="cpu_max_num_threads"):
        init_taichi(cpu_max_num_threads=threads)


@pytest.mark.parametrize("name", KERNEL_MODULES)
def test_kernel_annotations_are_evaluated(name):
    """Test kernel modules keep real annotation objects, which Taichi requires."""
    module = importlib.import_module(name)
    assert "annotations" not in vars(module)
