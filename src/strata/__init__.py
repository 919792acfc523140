"""Strata.

Aggregates application configuration from layered sources (process environment, AWS
Secrets Manager, SSM Parameter Store, local files) into a single validated, read-only
configuration object.
"""

from importlib.metadata import version

try:
    __version__ = version("strata")
except Exception:
    # Local copy or not installed with setuptools.
    # Disable minimum version checks on downstream libraries.
    __version__ = "9999"
