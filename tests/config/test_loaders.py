"""Test loaders and associated functionalities."""

import json

import pytest
from traitlets import Bool, Dict, Enum, Float, Int, List, Unicode, Union

from strata.config.loaders import (
    ConfigLoader,
    ConfigValue,
    DictLoader,
    EnvFileLoader,
    EnvironmentLoader,
    JsonLoader,
    TomlLoader,
    YamlLoader,
)
from strata.config.types import ConfigParsingError, MultipleConfigKeyError, SourceType


class TestConfigValue:
    """Test ConfigValue related features."""

    def test_get_value(self):
        cv = ConfigValue("0", "")
        assert cv.get_value() == "0"
        cv.value = 1
        assert cv.get_value() == 1

    def test_str(self):
        assert str(ConfigValue("a", "key", origin="env")) == "a (env)"
        assert repr(ConfigValue("a", "key")) == "ConfigValue(a)"

    def test_parse_no_trait(self):
        cv = ConfigValue("0", "")
        with pytest.raises(ConfigParsingError):
            cv.parse()

    def assert_parse(self, trait, input, value):
        cv = ConfigValue(input, "")
        cv.trait = trait
        cv.parse()
        assert cv.value == value

    def test_parse_simple(self):
        self.assert_parse(Int(), "0", 0)
        self.assert_parse(Float(), "1.5", 1.5)
        self.assert_parse(Bool(), "true", True)
        self.assert_parse(Bool(), "False", False)
        self.assert_parse(Unicode(), "text", "text")
        self.assert_parse(Enum(["a", "b"]), "b", "b")

    def test_parse_containers(self):
        self.assert_parse(List(Int()), "1", [1])
        self.assert_parse(Dict(), "a=1", {"a": "1"})

    def test_parse_union(self):
        self.assert_parse(Union([Int(), Unicode()]), "1", 1)
        self.assert_parse(Union([Int(), Unicode()]), "a", "a")

    @pytest.mark.parametrize(
        "trait,input", [(Int(), "a"), (Float(), "x"), (Bool(), "yes"), (Int(), 3)]
    )
    def test_parse_wrong(self, trait, input):
        cv = ConfigValue(input, "key")
        cv.trait = trait
        with pytest.raises(ConfigParsingError):
            cv.parse()


class TestBaseLoader:
    def test_name(self):
        assert ConfigLoader().name == "ConfigLoader"
        assert ConfigLoader().get_name() == "ConfigLoader"

    @pytest.mark.asyncio
    async def test_abstract(self):
        loader = ConfigLoader()
        assert await loader.is_available()
        with pytest.raises(NotImplementedError):
            await loader.load()

    @pytest.mark.asyncio
    async def test_dict_loader(self):
        data = {"a": {"b": 1}}
        loader = DictLoader(data, name="static", source_type="local-file", priority=3)
        assert loader.name == "static"
        assert loader.source_type is SourceType.LOCAL_FILE
        assert loader.priority == 3

        loaded = await loader.load()
        assert loaded == data
        loaded["a"]["b"] = 2
        assert await loader.load() == data


class TestEnvironmentLoader:
    @pytest.mark.asyncio
    async def test_no_prefix(self):
        environ = {"HOST": "localhost", "PORT": "80"}
        loader = EnvironmentLoader(environ=environ)
        assert loader.name == "EnvironmentLoader"
        assert await loader.is_available()
        assert await loader.load() == environ

    @pytest.mark.asyncio
    async def test_prefix(self):
        environ = {"APP_HOST": "localhost", "APP_": "empty", "OTHER": "x"}
        loader = EnvironmentLoader("APP_", environ=environ)
        assert loader.name == "EnvironmentLoader(APP_)"
        assert await loader.load() == {"HOST": "localhost"}

    @pytest.mark.asyncio
    async def test_os_environ(self, monkeypatch):
        monkeypatch.setenv("STRATA_TEST_VARIABLE", "1")
        loader = EnvironmentLoader("STRATA_TEST_")
        assert await loader.load() == {"VARIABLE": "1"}


class TestFileLoaders:
    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path):
        loader = JsonLoader(str(tmp_path / "missing.json"))
        assert not await loader.is_available()
        assert await loader.load() == {}
        assert loader.source_type is SourceType.LOCAL_FILE

    @pytest.mark.asyncio
    async def test_json(self, tmp_path):
        file = tmp_path / "config.json"
        file.write_text(json.dumps({"PORT": 8080, "database": {"host": "db"}}))
        loader = JsonLoader(str(file))
        assert loader.name == f"JsonLoader({file})"
        assert await loader.is_available()
        assert await loader.load() == {"PORT": 8080, "database": {"host": "db"}}

    @pytest.mark.asyncio
    async def test_json_duplicate(self, tmp_path):
        file = tmp_path / "config.json"
        file.write_text('{"PORT": 1, "PORT": 2}')
        with pytest.raises(MultipleConfigKeyError) as excinfo:
            await JsonLoader(str(file)).load()
        assert excinfo.value.key == "PORT"

    @pytest.mark.asyncio
    async def test_json_not_mapping(self, tmp_path):
        file = tmp_path / "config.json"
        file.write_text("[1, 2]")
        with pytest.raises(TypeError):
            await JsonLoader(str(file)).load()

    @pytest.mark.asyncio
    async def test_toml(self, tmp_path):
        file = tmp_path / "config.toml"
        file.write_text(
            'PORT = 8080\n\n[database]\nhost = "db"\n\n[tool.strata]\ntimeout = 3\n'
        )
        assert await TomlLoader(str(file)).load() == {
            "PORT": 8080,
            "database": {"host": "db"},
            "tool": {"strata": {"timeout": 3}},
        }
        assert await TomlLoader(str(file), table="tool.strata").load() == {
            "timeout": 3
        }
        assert await TomlLoader(str(file), table="tool.missing").load() == {}

    @pytest.mark.asyncio
    async def test_yaml(self, tmp_path):
        file = tmp_path / "config.yaml"
        file.write_text("PORT: 8080\ndatabase:\n  host: db\n  replicas: [a, b]\n")
        assert await YamlLoader(str(file)).load() == {
            "PORT": 8080,
            "database": {"host": "db", "replicas": ["a", "b"]},
        }

    @pytest.mark.asyncio
    async def test_yaml_empty(self, tmp_path):
        file = tmp_path / "config.yaml"
        file.write_text("")
        assert await YamlLoader(str(file)).load() == {}

    @pytest.mark.asyncio
    async def test_envfile(self, tmp_path):
        file = tmp_path / ".env"
        file.write_text(
            "# comment\n\nHOST=localhost\nURL=postgres://u:p@h/db?a=b\nQUOTED='x y'\n"
            "NOVALUE\n"
        )
        loader = EnvFileLoader(str(file))
        assert await loader.load() == {
            "HOST": "localhost",
            "URL": "postgres://u:p@h/db?a=b",
            "QUOTED": "x y",
        }
