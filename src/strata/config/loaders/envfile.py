"""Dotenv configuration file loader.

Files of ``KEY=value`` lines are parsed with :mod:`python-dotenv<dotenv>`. This is the
format of the local override file consulted in the local tier.
"""

import io
import typing as t
from collections.abc import Mapping

from dotenv import dotenv_values

from .core import FileLoader


def _defined(values: Mapping[str, str | None]) -> dict[str, str]:
    # keys without '=' have a None value
    return {k: v for k, v in values.items() if k and v is not None}


def parse_env(content: str, interpolate: bool = False) -> dict[str, str]:
    """Return the key/values of ``.env`` formatted text."""
    return _defined(
        dotenv_values(stream=io.StringIO(content), interpolate=interpolate)
    )


class EnvFileLoader(FileLoader):
    """Loader for ``.env`` files.

    Parameters
    ----------
    interpolate
        Expand ``${VAR}`` references, as done by python-dotenv.
    """

    def __init__(
        self, filename: str = ".env", interpolate: bool = False, **kwargs: t.Any
    ) -> None:
        super().__init__(filename, **kwargs)
        self.interpolate = interpolate

    def read(self) -> dict[str, t.Any]:
        return _defined(
            dotenv_values(
                self.full_filename, interpolate=self.interpolate, encoding="utf-8"
            )
        )
