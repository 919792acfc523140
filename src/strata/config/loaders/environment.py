"""Process environment loader."""

from __future__ import annotations

import os
import typing as t
from collections import abc

from strata.config.types import SourceType

from .core import ConfigLoader


class EnvironmentLoader(ConfigLoader):
    """Load configuration from environment variables.

    Parameters
    ----------
    prefix
        If given, only variables starting with this prefix are kept, and the prefix is
        removed from their names.
    environ
        Mapping to read from. Defaults to :data:`os.environ`, read at each load.
    """

    source_type = SourceType.ENVIRONMENT

    def __init__(
        self,
        prefix: str | None = None,
        environ: abc.Mapping[str, str] | None = None,
        **kwargs: t.Any,
    ) -> None:
        super().__init__(**kwargs)
        self.prefix = prefix
        self.environ = environ

    @property
    def name(self) -> str:
        if self.prefix:
            return f"{self.__class__.__name__}({self.prefix})"
        return self.__class__.__name__

    async def load(self) -> dict[str, t.Any]:
        environ = os.environ if self.environ is None else self.environ

        if not self.prefix:
            return dict(environ)

        config = {}
        for key, value in environ.items():
            if not key.startswith(self.prefix):
                continue
            stripped = key.removeprefix(self.prefix)
            if stripped:
                config[stripped] = value
        return config
