#!/usr/bin/env python3

import os

import pytest
from hypothesis import HealthCheck, Phase, Verbosity, settings

settings.register_profile(
    "ci", max_examples=1000, suppress_health_check=[HealthCheck.too_slow]
)
settings.register_profile("dev", max_examples=50)
settings.register_profile(
    "debug",
    max_examples=5,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.target],
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "dev").lower())

# lower layers first, so that their failures are reported before the ones they cause
LAYERS = [
    "test_utils",
    "test_environment",
    "test_loaders",
    "test_aws",
    "test_precedence",
    "test_namespaces",
    "test_schema",
    "test_orchestrator",
    "test_options",
    "test_service",
]


def pytest_collection_modifyitems(items: list[pytest.Item]):
    def layer(item: pytest.Item) -> int:
        module = item.module.__name__.rsplit(".", 1)[-1]  # type: ignore[attr-defined]
        try:
            return LAYERS.index(module)
        except ValueError:
            return len(LAYERS)

    # sort is stable, the order inside a module is kept
    items.sort(key=layer)
