"""Toml configuration file loader.

We use :mod:`tomlkit` to parse file.
"""

from typing import Any

import tomlkit

from .core import FileLoader


class TomlLoader(FileLoader):
    """Load config from TOML files using tomlkit library.

    Parameters
    ----------
    table
        Dot-separated name of the table holding the configuration, for instance
        ``tool.strata`` in a ``pyproject.toml``. If None, the whole document is used.
        A missing table gives an empty configuration.
    """

    def __init__(self, filename: str, table: str | None = None, **kwargs: Any) -> None:
        super().__init__(filename, **kwargs)
        self.table = table

    def read(self) -> Any:
        with open(self.full_filename) as fp:
            data: Any = tomlkit.load(fp).unwrap()

        if self.table is not None:
            for key in self.table.split("."):
                data = data.get(key, {})
        return data
