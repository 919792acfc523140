"""Loading of configuration from a sequence of loaders.

The :class:`LoadingOrchestrator` probes and runs each loader in turn, labels their
outputs as :class:`.ConfigurationSource` and shallow-merges them, later loaders taking
precedence. Errors of individual loaders are either recovered or propagated depending on
two flags, ``fail_on_error`` and ``fallback_to_local``.
"""

from __future__ import annotations

import asyncio
import logging
import math
import os
import time
import typing as t
from collections.abc import Mapping, Sequence

from strata.utils import mask_value

from .loaders import ConfigLoader, EnvFileLoader
from .precedence import get_policy, source_priority
from .source import ConfigurationSource
from .types import (
    LOCAL,
    LoaderError,
    MissingEnvironmentMappingError,
    PrecedencePolicy,
)

log = logging.getLogger(__name__)


class LoaderOutcome(t.NamedTuple):
    """Result of running one loader."""

    loader: ConfigLoader
    available: bool
    data: dict[str, t.Any] | None = None
    error: LoaderError | None = None


class LoadingOrchestrator:
    """Run loaders and aggregate their configuration.

    Parameters
    ----------
    loaders
        Loaders, from lowest to highest precedence.
    tier
        Active environment tier. Remote loaders are skipped in the local tier.
    fail_on_error
        Abort on the first loader failure.
    fallback_to_local
        Continue with the remaining loaders when one fails. Only effective if
        `fail_on_error` is False.
    concurrent
        Run all loaders concurrently. Their outputs are still merged in order.
    policy
        Precedence policy, used to assign a default base priority to loaders that
        do not define one.
    environ
        Environment mapping checked for the credential profile marker. Defaults to
        :data:`os.environ`.
    override_file
        Local override file applied on top of everything in the local tier. None to
        disable.
    profile_variable
        The override file is only applied if this variable is set.
    log
        Logger instance.
    """

    def __init__(
        self,
        loaders: Sequence[ConfigLoader],
        tier: str = LOCAL,
        fail_on_error: bool = False,
        fallback_to_local: bool = True,
        concurrent: bool = False,
        policy: PrecedencePolicy | str = PrecedencePolicy.MERGE,
        environ: Mapping[str, str] | None = None,
        override_file: str | None = ".env",
        profile_variable: str = "AWS_PROFILE",
        log: logging.Logger = log,
    ):
        self.loaders = list(loaders)
        self.tier = tier
        self.fail_on_error = fail_on_error
        self.fallback_to_local = fallback_to_local
        self.concurrent = concurrent
        self.policy = get_policy(policy)
        self.environ = os.environ if environ is None else environ
        self.override_file = override_file
        self.profile_variable = profile_variable
        self.log = log

        self.origins: dict[str, str] = {}
        """Name of the source each key of the last merge came from."""

    @property
    def recover_errors(self) -> bool:
        """Whether loader failures are recorded instead of propagated."""
        return self.fallback_to_local and not self.fail_on_error

    async def is_available(self, loader: ConfigLoader) -> bool:
        """Return whether `loader` should be run.

        A probe that raises counts as unavailable.
        """
        if loader.remote and self.tier == LOCAL:
            self.log.debug("Skipping %s in %s tier.", loader.name, LOCAL)
            return False
        try:
            available = await loader.is_available()
        except Exception as err:
            self.log.debug("Availability check of %s failed: %s", loader.name, err)
            return False
        if not available:
            self.log.debug("Skipping %s (not available).", loader.name)
        return available

    async def run(self, loader: ConfigLoader) -> LoaderOutcome:
        """Probe and load a single loader.

        Failures are wrapped in a :class:`.LoaderError` and returned, not raised, except
        for :class:`.MissingEnvironmentMappingError` which is always fatal.
        """
        if not await self.is_available(loader):
            return LoaderOutcome(loader, available=False)

        start = time.perf_counter()
        try:
            data = await loader.load()
        except MissingEnvironmentMappingError:
            raise
        except Exception as err:
            error = LoaderError(
                f"Failed to load configuration from {loader.name}: {err}",
                loader=loader.name,
            )
            error.__cause__ = err
            return LoaderOutcome(loader, available=True, error=error)

        self.log.debug(
            "Loaded %d keys from %s in %.3fs.",
            len(data),
            loader.name,
            time.perf_counter() - start,
        )
        return LoaderOutcome(loader, available=True, data=dict(data))

    def _priority(self, loader: ConfigLoader) -> int | float:
        if loader.priority is not None:
            return loader.priority
        return source_priority(loader.source_type, self.policy)

    def _to_source(self, outcome: LoaderOutcome) -> ConfigurationSource | None:
        loader = outcome.loader
        if not outcome.available:
            return None

        priority = self._priority(loader)
        if outcome.error is None:
            return ConfigurationSource.from_loader(
                loader, outcome.data or {}, priority=priority
            )

        if not self.recover_errors:
            raise outcome.error
        self.log.warning("%s, continuing with remaining loaders.", outcome.error)
        return ConfigurationSource.from_loader(
            loader, {}, errors=[str(outcome.error)], priority=priority
        )

    async def _run_all(self) -> list[LoaderOutcome]:
        results = await asyncio.gather(
            *(self.run(loader) for loader in self.loaders), return_exceptions=True
        )
        outcomes = []
        for result in results:
            if isinstance(result, BaseException):
                raise result
            outcomes.append(result)
        return outcomes

    async def load_sources(self) -> list[ConfigurationSource]:
        """Run all loaders and return their labeled outputs, in order.

        Unavailable loaders are not included. Recovered failures are included with
        empty data and the error message.

        Raises
        ------
        LoaderError
            If a loader fails and errors are not recovered.
        MissingEnvironmentMappingError
            If a remote loader has no path for the active tier.
        """
        sources: list[ConfigurationSource] = []

        if self.concurrent:
            for outcome in await self._run_all():
                if (source := self._to_source(outcome)) is not None:
                    sources.append(source)
        else:
            for loader in self.loaders:
                outcome = await self.run(loader)
                if (source := self._to_source(outcome)) is not None:
                    sources.append(source)

        if (override := await self.local_override()) is not None:
            sources.append(override)

        return sources

    async def local_override(self) -> ConfigurationSource | None:
        """Return the local override file as a source, if it applies.

        It applies only in the local tier, when the credential profile variable is set
        and the file exists. It is given an infinite priority so that it wins over
        every other source. A file that cannot be read is ignored with a warning.
        """
        if (
            self.tier != LOCAL
            or not self.override_file
            or not self.environ.get(self.profile_variable)
        ):
            return None

        loader = EnvFileLoader(self.override_file, log=self.log)
        if not await loader.is_available():
            return None

        try:
            data = await loader.load()
        except Exception as err:
            self.log.warning("Failed to load local override %s: %s", loader.name, err)
            return None

        self.log.debug(
            "Applying %d keys from local override %s.", len(data), loader.name
        )
        return ConfigurationSource.from_loader(loader, data, priority=math.inf)

    def merge(self, sources: Sequence[ConfigurationSource]) -> dict[str, t.Any]:
        """Shallow-merge sources in order, the last one winning on each key."""
        config: dict[str, t.Any] = {}
        self.origins = {}
        for source in sources:
            for key, value in source.data.items():
                if key in config:
                    self.log.debug(
                        "Key '%s' with value '%s' (from %s) has been overwritten "
                        "by value '%s' (from %s).",
                        key,
                        mask_value(key, config[key]),
                        self.origins[key],
                        mask_value(key, value),
                        source.name,
                    )
                config[key] = value
                self.origins[key] = source.name
        return config

    async def load(self) -> dict[str, t.Any]:
        """Run all loaders and return the merged configuration."""
        return self.merge(await self.load_sources())
