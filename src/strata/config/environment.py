"""Resolution of the environment tier.

The tier is read once per aggregation pass, from a primary variable (``APP_ENV`` by
default) with a secondary fallback (``NODE_ENV``). The result is passed explicitly to
every component that needs it.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping

from .types import LOCAL, TIERS

log = logging.getLogger(__name__)


def is_valid_tier(value: str | None) -> bool:
    """Return True if `value` is a known environment tier."""
    return value in TIERS


def resolve_tier(
    environ: Mapping[str, str] | None = None,
    primary: str = "APP_ENV",
    secondary: str = "NODE_ENV",
    log: logging.Logger = log,
) -> str:
    """Return the active environment tier.

    Parameters
    ----------
    environ
        Environment mapping to read. Defaults to :data:`os.environ`.
    primary
        Name of the variable holding the tier.
    secondary
        Name of the variable used when the primary one is missing or invalid.
    log
        Logger receiving warnings about fallbacks.

    Returns
    -------
    tier
        One of :data:`.types.TIERS`. Defaults to ``local``.
    """
    if environ is None:
        environ = os.environ

    primary_value = environ.get(primary)
    secondary_value = environ.get(secondary)

    if primary_value:
        if is_valid_tier(primary_value):
            if secondary_value and secondary_value != primary_value:
                log.warning(
                    "%s (%s) and %s (%s) differ, using %s.",
                    primary,
                    primary_value,
                    secondary,
                    secondary_value,
                    primary_value,
                )
            return primary_value

        if is_valid_tier(secondary_value):
            log.warning(
                "Invalid %s value '%s', falling back to %s '%s'.",
                primary,
                primary_value,
                secondary,
                secondary_value,
            )
            return secondary_value  # type: ignore[return-value]

        log.warning(
            "Invalid %s value '%s' (valid values: %s), defaulting to '%s'.",
            primary,
            primary_value,
            ", ".join(TIERS),
            LOCAL,
        )
        return LOCAL

    if is_valid_tier(secondary_value):
        return secondary_value  # type: ignore[return-value]

    if secondary_value:
        log.warning(
            "Invalid %s value '%s' (valid values: %s), defaulting to '%s'.",
            secondary,
            secondary_value,
            ", ".join(TIERS),
            LOCAL,
        )
    return LOCAL
