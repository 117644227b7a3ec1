"""Shared pytest fixtures for ditree tests."""

import pytest

from ditree import Injector, LockMode, create_injector


@pytest.fixture()
def injector() -> Injector:
    """Root injector with just-in-time bindings enabled."""
    return create_injector()


@pytest.fixture()
def strict_injector() -> Injector:
    """Root injector that never creates constructor-injected just-in-time bindings."""
    return create_injector(autoregister_concrete_types=False)


@pytest.fixture()
def unlocked_injector() -> Injector:
    """Root injector for single-threaded use."""
    return create_injector(lock_mode=LockMode.NONE)
