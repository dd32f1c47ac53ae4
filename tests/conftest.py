"""Pytest configuration for ray caster tests.

This module provides shared fixtures for all test modules, including
Taichi initialization which must happen once per session.
"""

import pytest
import taichi as ti


@pytest.fixture(scope="session", autouse=True)
def init_taichi_session():
    """Initialize Taichi once for the entire test session.

    Using session scope prevents multiple ti.init() calls, which would
    invalidate the module-level fields created at import time.
    """
    ti.init(arch=ti.cpu, random_seed=42)
    yield


@pytest.fixture(autouse=True)
def clear_all_scene_data():
    """Clear scene data before and after each test.

    This ensures tests are isolated from each other.
    """
    # Import here so Taichi is initialized before fields are created
    from src.octrace.camera.pinhole import reset_camera
    from src.octrace.materials.lights import clear_lights
    from src.octrace.materials.material import clear_materials
    from src.octrace.materials.shading import set_shadows_enabled
    from src.octrace.materials.texture import clear_textures
    from src.octrace.scene.geometry import clear_geometry
    from src.octrace.scene.intersection import set_use_octree
    from src.octrace.scene.octree import clear_octree

    def _clear_all():
        clear_geometry()
        clear_octree()
        clear_materials()
        clear_textures()
        clear_lights()
        reset_camera()
        set_use_octree(True)
        set_shadows_enabled(True)

    _clear_all()
    yield
    _clear_all()


@pytest.fixture
def fresh_scene():
    """Create a fresh SceneManager for each test."""
    from src.octrace.scene.manager import SceneManager

    scene = SceneManager()
    yield scene
    scene.clear()
