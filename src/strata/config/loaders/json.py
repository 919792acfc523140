"""JSON configuration file loader."""

import json
from collections.abc import Sequence
from typing import Any

from strata.config.types import MultipleConfigKeyError

from .core import FileLoader


def dict_raise_on_duplicate(ordered_pairs: Sequence[tuple[Any, Any]]) -> dict:
    """Raise if there are duplicate keys."""
    d: dict = {}
    for k, v in ordered_pairs:
        if k in d:
            raise MultipleConfigKeyError(k, [d[k], v])
        d[k] = v
    return d


class JsonLoader(FileLoader):
    """Loader for JSON files."""

    JSON_DECODER: type[json.JSONDecoder] | None = None
    """Custom json decoder to use."""

    def read(self) -> Any:
        """Parse the JSON file.

        We use builtin :mod:`json` to parse file, with eventually a custom decoder
        specified by :attr:`JSON_DECODER`. Duplicate keys are refused.
        """
        with open(self.full_filename) as fp:
            return json.load(
                fp, cls=self.JSON_DECODER, object_pairs_hook=dict_raise_on_duplicate
            )
