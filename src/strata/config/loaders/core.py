"""Configuration loaders bases."""

from __future__ import annotations

import logging
import typing as t
from collections import abc
from copy import deepcopy
from os import path

from traitlets.traitlets import TraitError, TraitType, Union
from traitlets.utils.sentinel import Sentinel

from strata.config.types import ConfigParsingError, SourceType

Undefined = Sentinel(
    "Undefined", "strata", "Option missing from every source, or not parsed yet."
)
"""Marker for values that were never obtained or parsed, distinct from ``None``."""


class ConfigValue:
    """A raw value on its way from a source to a schema trait.

    Parameters
    ----------
    input
        Value as found in the aggregated configuration, often a string read from
        the environment or a remote store.
    key
        Dot-separated key in the schema.
    origin
        Names of the sources the value was aggregated from. Only used in messages.
    """

    def __init__(self, input: t.Any, key: str, origin: str | None = None):
        self.key = key
        self.input = input
        self.origin = origin

        self.value: t.Any = Undefined
        """Parsed value, :attr:`Undefined` until :meth:`parse` succeeds."""
        self.trait: TraitType | None = None
        """Trait the value is checked against."""

    def __str__(self) -> str:
        if self.origin is None:
            return str(self.get_value())
        return f"{self.get_value()} ({self.origin})"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self})"

    def get_value(self) -> t.Any:
        """Return the parsed value if there is one, the raw input otherwise."""
        return self.input if self.value is Undefined else self.value

    def parse(self) -> None:
        """Convert the raw string input for :attr:`trait`.

        Strings go through
        :meth:`TraitType.from_string<traitlets.TraitType.from_string>`, or
        :meth:`Container.from_string_list<traitlets.Container.from_string_list>` for
        containers, a lone string giving a single element. Each alternative of a
        :class:`traitlets.Union` is tried in order, the first that parses wins.

        Raises
        ------
        ConfigParsingError
            If there is no trait, the input is not a string, or nothing parsed it.
        """
        if self.trait is None:
            raise ConfigParsingError(
                f"Cannot parse key '{self.key}' without a corresponding trait."
            )

        def attempt(trait: TraitType) -> bool:
            if isinstance(trait, Union):
                return any(attempt(inner) for inner in trait.trait_types)
            try:
                if hasattr(trait, "from_string_list"):
                    self.value = trait.from_string_list([self.input])
                else:
                    self.value = trait.from_string(self.input)
            except (TraitError, ValueError, SyntaxError):
                return False
            return True

        if isinstance(self.input, str) and attempt(self.trait):
            return

        raise ConfigParsingError(
            f"Could not parse '{self.input}' for key '{self.key}' "
            f"({self.trait.__class__.__name__})."
        )


class ConfigLoader:
    """Abstract ConfigLoader.

    Define the public API used by the :class:`.LoadingOrchestrator`: an awaitable
    :meth:`load` returning a flat mapping, an awaitable availability probe
    :meth:`is_available`, and a stable :attr:`name`.

    Parameters
    ----------
    priority
        Base priority given to the data of this loader when it is labeled as a
        :class:`.ConfigurationSource`. If None, a default depending on the source
        type and precedence policy is used.
    log
        Logger instance.
    """

    source_type: SourceType = SourceType.ENVIRONMENT
    """Kind of backend this loader reads from."""
    remote: bool = False
    """Whether this loader talks to a remote backend.

    Remote loaders are never consulted in the local tier.
    """

    log: logging.Logger

    def __init__(
        self, priority: int | float | None = None, log: logging.Logger | None = None
    ):
        self.priority = priority
        if log is None:
            log = logging.getLogger(__name__)
        self.log = log

    def __repr__(self) -> str:
        return f"<{self.name}>"

    @property
    def name(self) -> str:
        """Identifier for diagnostics."""
        return self.__class__.__name__

    def get_name(self) -> str:
        """Return :attr:`name`."""
        return self.name

    async def is_available(self) -> bool:
        """Return whether this loader can be used.

        Unavailable loaders are skipped and :meth:`load` is never called on them.
        """
        return True

    async def load(self) -> dict[str, t.Any]:
        """Return the key/values of this source.

        Must return an empty dictionnary when nothing is found, and raise only for
        actual backend failures.

        :Not implemented:
        """
        raise NotImplementedError


class DictLoader(ConfigLoader):
    """Load a configuration from a static mapping.

    Parameters
    ----------
    data
        Key/values returned on each load. It is copied.
    name
        Identifier. Defaults to the class name.
    source_type
        Kind of source this data stands for.
    """

    def __init__(
        self,
        data: abc.Mapping[str, t.Any],
        name: str | None = None,
        source_type: SourceType | str = SourceType.ENVIRONMENT,
        **kwargs: t.Any,
    ) -> None:
        super().__init__(**kwargs)
        self.data = deepcopy(dict(data))
        self._name = name
        self.source_type = SourceType(source_type)

    @property
    def name(self) -> str:
        return self._name or super().name

    async def load(self) -> dict[str, t.Any]:
        return deepcopy(self.data)


class FileLoader(ConfigLoader):
    """Load config from a file.

    Common logic goes here. A missing file is not an error: the loader reports itself
    unavailable and would load an empty configuration.

    Parameters
    ----------
    filename
        Path of configuration file to load.
    """

    source_type = SourceType.LOCAL_FILE

    def __init__(self, filename: str, **kwargs: t.Any) -> None:
        super().__init__(**kwargs)
        self.filename = filename
        self.full_filename = path.abspath(filename)

    @property
    def name(self) -> str:
        return f"{self.__class__.__name__}({self.filename})"

    async def is_available(self) -> bool:
        return path.isfile(self.full_filename)

    async def load(self) -> dict[str, t.Any]:
        if not path.isfile(self.full_filename):
            self.log.debug("Configuration file %s not found.", self.full_filename)
            return {}
        data = self.read()
        if not isinstance(data, abc.Mapping):
            raise TypeError(
                f"Configuration file {self.filename} does not contain a mapping "
                f"(found {type(data).__name__})."
            )
        return dict(data)

    def read(self) -> t.Any:
        """Parse the file and return its content.

        :Not implemented:
        """
        raise NotImplementedError
