"""Configuration service.

The :class:`ConfigService` ties all components together. On :meth:`~.initialize` it:

1. resolves the environment tier, once,
2. runs the loaders through a :class:`.LoadingOrchestrator`,
3. merges their outputs, in order or with a precedence policy,
4. organizes the result into namespaces and creates their factories, if asked,
5. validates the result against a schema,

and exposes the frozen configuration to readers. The whole state is swapped at once, so
that readers never see a partially rebuilt configuration during a :meth:`~.refresh`.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import os
import typing as t
from collections.abc import Mapping, Sequence

from strata.utils import did_you_mean

from .environment import resolve_tier
from .loaders import (
    ConfigLoader,
    EnvironmentLoader,
    ParameterStoreLoader,
    SecretsManagerLoader,
    Undefined,
)
from .namespaces import ConfigurationFactory, create_factories, organize
from .options import ServiceOptions
from .orchestrator import LoadingOrchestrator
from .precedence import merge_sources
from .schema import Schema, freeze_value, schema_for_tier, validate_config
from .source import ConfigurationSource
from .types import (
    LOCAL,
    InitializationCancelledError,
    NotInitializedError,
    PrecedencePolicy,
)

log = logging.getLogger(__name__)


class State(enum.StrEnum):
    """Lifecycle of a :class:`ConfigService`."""

    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"


class Snapshot(t.NamedTuple):
    """Everything produced by one aggregation pass."""

    tier: str
    config: Schema | Mapping[str, t.Any]
    sources: list[ConfigurationSource]
    namespaces: dict[str, dict[str, t.Any]]
    factories: dict[str, ConfigurationFactory]


class ConfigService:
    """Aggregate, validate and expose configuration.

    Parameters
    ----------
    schema
        Schema class to validate against. If None, the default schema of the active
        tier is used (see :func:`.schema_for_tier`).
    loaders
        Loaders, from lowest to highest precedence. If None, the environment, the
        parameter store and the secrets manager are used, in that order.
    options
        Service options, as a :class:`.ServiceOptions` or a mapping.
    environ
        Environment mapping, read once per pass. Defaults to :data:`os.environ`.
    log
        Logger instance.
    kwargs
        Options, if `options` is not given as a :class:`.ServiceOptions`.

    Examples
    --------
    ::

        service = ConfigService(AppConfig, namespaces=["database"])
        await service.initialize()
        service.get("PORT")
        service.get_factory("database")()
    """

    def __init__(
        self,
        schema: type[Schema] | None = None,
        loaders: Sequence[ConfigLoader] | None = None,
        options: ServiceOptions | Mapping[str, t.Any] | None = None,
        environ: Mapping[str, str] | None = None,
        log: logging.Logger = log,
        **kwargs: t.Any,
    ):
        if isinstance(options, ServiceOptions):
            if kwargs:
                raise TypeError(
                    "Cannot give options as keyword arguments along a "
                    "ServiceOptions instance."
                )
        else:
            options = ServiceOptions.from_mapping(dict(options or {}) | kwargs)

        self.options = options
        self.schema = schema
        self.loaders = None if loaders is None else list(loaders)
        self.environ = os.environ if environ is None else environ
        self.log = log

        self._state = State.UNINITIALIZED
        self._snapshot: Snapshot | None = None
        self._lock = asyncio.Lock()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} ({self._state})>"

    @property
    def state(self) -> State:
        """Current lifecycle state."""
        return self._state

    def is_initialized(self) -> bool:
        """Return True if a configuration is available."""
        return self._snapshot is not None

    def _get_snapshot(self) -> Snapshot:
        if self._snapshot is None:
            raise NotInitializedError()
        return self._snapshot

    async def initialize(self) -> None:
        """Load the configuration.

        Does nothing if the service is already initialized. Concurrent calls wait for
        the same pass.

        Raises
        ------
        LoaderError
            If a loader failed and errors are not recovered.
        InvalidSourceError
            If sources could not be merged.
        MissingEnvironmentMappingError
            If a remote loader has no path for the active tier.
        ConfigValidationError
            If the configuration does not comply with the schema.
        InitializationCancelledError
            If loading took longer than the ``timeout`` option.
        """
        await self._reload(force=False)

    async def refresh(self) -> None:
        """Discard the current configuration and load it again.

        Refreshes are serialized. Readers keep the previous configuration until the
        new one is ready. If the refresh fails, the service is left in the failed
        state without configuration.
        """
        await self._reload(force=True)

    async def _reload(self, force: bool) -> None:
        async with self._lock:
            if not force and self._state is State.READY:
                return

            self._state = State.INITIALIZING
            try:
                snapshot = await self._run_with_timeout()
            except asyncio.CancelledError:
                self._fail("Configuration initialization was cancelled.")
                raise
            except Exception as err:
                self._fail(f"Failed to initialize configuration: {err}")
                raise

            self._snapshot = snapshot
            self._state = State.READY
            self.log.debug(
                "Configuration ready (tier %s, %d sources).",
                snapshot.tier,
                len(snapshot.sources),
            )

    def _fail(self, msg: str) -> None:
        self._snapshot = None
        self._state = State.FAILED
        self.log.error(msg)

    async def _run_with_timeout(self) -> Snapshot:
        timeout = self.options.timeout
        if timeout is None:
            return await self.aggregate()
        try:
            return await asyncio.wait_for(self.aggregate(), timeout)
        except TimeoutError as err:
            raise InitializationCancelledError(
                f"Configuration initialization timed out after {timeout}s.",
                timeout=timeout,
            ) from err

    def resolve_tier(self) -> str:
        """Return the active environment tier."""
        return resolve_tier(
            self.environ,
            primary=self.options.primary_variable,
            secondary=self.options.secondary_variable,
            log=self.log,
        )

    def default_loaders(self, tier: str) -> list[ConfigLoader]:
        """Return the loaders used when none are given."""
        opts = self.options
        loaders: list[ConfigLoader] = [
            EnvironmentLoader(opts.env_prefix, environ=self.environ, log=self.log)
        ]
        if tier == LOCAL:
            return loaders

        aws_kwargs = dict(
            environment_mapping=opts.environment_mapping,
            region=opts.region or self.environ.get("AWS_REGION"),
            log=self.log,
        )
        loaders.append(
            ParameterStoreLoader(
                opts.parameter_path,
                tier,
                with_decryption=opts.with_decryption,
                **aws_kwargs,
            )
        )
        loaders.append(SecretsManagerLoader(opts.secret_name, tier, **aws_kwargs))
        return loaders

    def orchestrator(self, tier: str) -> LoadingOrchestrator:
        """Return the orchestrator for a pass in `tier`."""
        opts = self.options
        loaders = self.loaders
        if loaders is None:
            loaders = self.default_loaders(tier)
        return LoadingOrchestrator(
            loaders,
            tier=tier,
            fail_on_error=opts.fail_on_error,
            fallback_to_local=opts.fallback_to_local,
            concurrent=opts.concurrent,
            policy=opts.precedence or PrecedencePolicy.MERGE,
            environ=self.environ,
            override_file=opts.override_file,
            profile_variable=opts.profile_variable,
            log=self.log,
        )

    async def aggregate(self) -> Snapshot:
        """Run one aggregation pass and return its results.

        This does not change the state of the service.
        """
        opts = self.options
        tier = self.resolve_tier()
        self.log.debug("Loading configuration for tier %s.", tier)

        orchestrator = self.orchestrator(tier)
        sources = await orchestrator.load_sources()

        if opts.precedence is not None:
            raw = merge_sources(sources, opts.precedence)
        else:
            raw = orchestrator.merge(sources)

        if raw.get(opts.primary_variable, tier) != tier:
            # the resolved tier wins over an invalid or shadowed raw value
            raw = {**raw, opts.primary_variable: tier}

        namespaces: dict[str, dict[str, t.Any]] = {}
        factories: dict[str, ConfigurationFactory] = {}
        if opts.namespaces:
            namespaces = organize(raw, list(opts.namespaces))
            factories = create_factories(namespaces, [s.name for s in sources])

        if opts.validate_on_load:
            schema = self.schema or schema_for_tier(tier)
            config: Schema | Mapping[str, t.Any] = validate_config(
                schema, raw, origin=", ".join(s.name for s in sources)
            )
        else:
            config = freeze_value(raw)

        return Snapshot(tier, config, sources, namespaces, factories)

    async def available_sources(self) -> list[str]:
        """Return the names of the loaders that would be used in the active tier."""
        orchestrator = self.orchestrator(self.resolve_tier())
        return [
            loader.name
            for loader in orchestrator.loaders
            if await orchestrator.is_available(loader)
        ]

    @property
    def app_env(self) -> str:
        """Environment tier of the current configuration."""
        return self._get_snapshot().tier

    @property
    def sources(self) -> list[ConfigurationSource]:
        """Sources of the current configuration."""
        return list(self._get_snapshot().sources)

    @property
    def factories(self) -> dict[str, ConfigurationFactory]:
        """Factories of each usable namespace."""
        return dict(self._get_snapshot().factories)

    def get_factory(self, namespace: str) -> ConfigurationFactory:
        """Return the factory of a namespace."""
        factories = self._get_snapshot().factories
        try:
            return factories[namespace]
        except KeyError:
            msg = f"No configuration factory for namespace '{namespace}'"
            if (suggestion := did_you_mean(factories, namespace)) is not None:
                msg += f" (did you mean '{suggestion}'?)"
            raise KeyError(msg) from None

    def get_namespace(self, namespace: str) -> Mapping[str, t.Any]:
        """Return the raw configuration of a namespace, as organized."""
        namespaces = self._get_snapshot().namespaces
        if namespace not in namespaces:
            raise KeyError(f"Unknown namespace '{namespace}'")
        return freeze_value(namespaces[namespace])

    def get_all(self) -> Schema | Mapping[str, t.Any]:
        """Return the whole configuration.

        It is read-only: a frozen schema instance, or a read-only mapping if
        validation is disabled.
        """
        return self._get_snapshot().config

    def get(self, key: str, default: t.Any = Undefined) -> t.Any:
        """Return the value at `key`.

        Parameters
        ----------
        key
            Key, dot-separated for nested values.
        default
            Returned if the key is missing. If not given, a missing key raises
            KeyError.

        Raises
        ------
        NotInitializedError
            If the service is not initialized.
        """
        config = self._get_snapshot().config
        try:
            if isinstance(config, Schema):
                return config[key]
            return _lookup(config, key)
        except KeyError:
            if default is Undefined:
                raise
            return default


def _lookup(config: Mapping[str, t.Any], key: str) -> t.Any:
    if key in config:
        return config[key]
    node: t.Any = config
    for name in key.split("."):
        if not isinstance(node, Mapping) or name not in node:
            raise KeyError(f"Could not resolve key '{key}'")
        node = node[name]
    return node
