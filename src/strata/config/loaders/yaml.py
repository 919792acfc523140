"""Yaml configuration file loader.

This uses :mod:`ruamel.yaml`.
"""

from __future__ import annotations

import typing as t

from ruamel.yaml import YAML
from ruamel.yaml.comments import CommentedMap, CommentedSeq, CommentedSet

from .core import FileLoader


def to_builtin(data: t.Any) -> t.Any:
    """Convert ruamel containers to plain python ones, recursively."""
    if isinstance(data, CommentedSet):
        return set(data.odict.keys())
    if isinstance(data, CommentedMap | dict):
        return {k: to_builtin(v) for k, v in data.items()}
    if isinstance(data, CommentedSeq | list):
        return [to_builtin(v) for v in data]
    return data


class YamlLoader(FileLoader):
    """Loader for Yaml files."""

    yaml: YAML

    def setup_yaml(self) -> None:
        """Set up main YAML instance.

        You can customize the yaml parsing here.
        """
        self.yaml = YAML(typ="rt")

    def read(self) -> t.Any:
        self.setup_yaml()

        with open(self.full_filename) as fp:
            data = self.yaml.load(fp.read())

        # empty file
        if data is None:
            data = {}

        return to_builtin(data)
