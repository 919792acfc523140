"""Test schemas and validation."""

from types import MappingProxyType

import pytest
from hypothesis import given
from hypothesis import strategies as st
from traitlets import Bool, Dict, Float, Int, List, TraitError, Unicode, Union

from strata.config.loaders import ConfigValue
from strata.config.schema import (
    DefaultConfig,
    RemoteConfig,
    Schema,
    Subsection,
    coerce_value,
    schema_for_tier,
    validate_config,
)
from strata.config.types import ConfigValidationError, ReadOnlyConfigError


class AppConfig(Schema):
    PORT = Int(3000)
    DEBUG = Bool(False)
    RATIO = Float(0.5)
    NAME = Unicode("app")
    TAGS = List(Unicode(), default_value=[])
    LIMITS = Dict(default_value={})
    ID = Union([Int(), Unicode()], default_value=0)

    class database(Schema):
        host = Unicode("localhost")
        port = Int(5432)

        class pool(Schema):
            size = Int(5)


class RequiredConfig(Schema):
    API_KEY = Unicode().tag(required=True)
    SECRET = Unicode().tag(required=True)

    class database(Schema):
        url = Unicode().tag(required=True)


def coerce(trait, value):
    cv = ConfigValue(value, "key")
    cv.trait = trait
    return coerce_value(cv)


class TestDefinition:
    def test_config_tag(self):
        assert AppConfig.class_traits()["PORT"].metadata["config"] is True

    def test_subsections(self):
        assert isinstance(AppConfig.database, Subsection)
        assert list(AppConfig.class_subsections()) == ["database"]

        config = AppConfig()
        assert isinstance(config.database, Schema)
        assert isinstance(config.database.pool, Schema)

    def test_keys(self):
        config = AppConfig()
        assert set(config.keys()) == {
            "PORT",
            "DEBUG",
            "RATIO",
            "NAME",
            "TAGS",
            "LIMITS",
            "ID",
            "database.host",
            "database.port",
            "database.pool.size",
        }
        assert "database" in config.keys(subsections=True)
        assert "database.pool" in config.keys(subsections=True)
        assert "database.host" not in config.keys(recursive=False)

    def test_required_keys(self):
        assert set(RequiredConfig.required_keys()) == {
            "API_KEY",
            "SECRET",
            "database.url",
        }

    def test_init_kwargs(self):
        config = AppConfig(PORT=80, **{"database.port": 1})
        assert config.PORT == 80
        assert config.database.port == 1


class TestAccess:
    def test_getitem(self):
        config = AppConfig()
        assert config["PORT"] == 3000
        assert config["database.port"] == 5432
        assert config["database.pool.size"] == 5
        assert config["database"] is config.database

    def test_did_you_mean(self):
        config = AppConfig()
        with pytest.raises(KeyError, match="did you mean 'PORT'"):
            config["PROT"]
        with pytest.raises(KeyError, match="did you mean 'database.host'"):
            config["database.hots"]

    def test_get_contains(self):
        config = AppConfig()
        assert config.get("missing", 1) == 1
        assert "database.host" in config
        assert "database.missing" not in config

    def test_setitem(self):
        config = AppConfig()
        config["database.host"] = "db"
        assert config.database.host == "db"
        with pytest.raises(KeyError):
            config["database.missing"] = 0

    def test_as_dict(self):
        config = AppConfig()
        flat = config.as_dict()
        assert flat["database.pool.size"] == 5
        nested = config.as_dict(nest=True)
        assert nested["database"]["pool"] == {"size": 5}

    def test_equality(self):
        assert AppConfig() == AppConfig()
        assert AppConfig() != AppConfig(PORT=1)
        assert AppConfig() != {"PORT": 3000}

    def test_repr_masks_secrets(self):
        config = RequiredConfig(API_KEY="hunter2")
        assert "hunter2" not in repr(config)


class TestCoercion:
    @pytest.mark.parametrize(
        "trait,value,expected",
        [
            (Int(), "42", 42),
            (Int(), "-1", -1),
            (Float(), "0.25", 0.25),
            (Bool(), "true", True),
            (Bool(), "false", False),
            (List(Int()), "[1, 2]", [1, 2]),
            (Dict(), '{"a": 1}', {"a": 1}),
            (List(Unicode()), "single", ["single"]),
            (Union([Int(), Unicode()]), "3", 3),
        ],
    )
    def test_coerced(self, trait, value, expected):
        assert coerce(trait, value) == expected

    @pytest.mark.parametrize(
        "trait,value",
        [
            (Unicode(), "42"),
            (Unicode(), "[1, 2]"),
            (Int(), "abc"),
            (Int(), 12),
            (Bool(), "maybe"),
        ],
    )
    def test_untouched(self, trait, value):
        assert coerce(trait, value) == value

    @given(st.integers())
    def test_integers(self, value):
        assert coerce(Int(), str(value)) == value


class TestValidateConfig:
    def test_defaults(self):
        config = validate_config(AppConfig, {})
        assert config == AppConfig()
        assert config.frozen

    def test_values(self):
        raw = {
            "PORT": "8080",
            "DEBUG": "true",
            "TAGS": '["a", "b"]',
            "database": {"host": "db", "pool": {"size": "10"}},
            "database.port": "5433",
            "UNKNOWN": "ignored",
        }
        config = validate_config(AppConfig, raw)
        assert config.PORT == 8080
        assert config.DEBUG is True
        assert config.TAGS == ("a", "b")
        assert config.database.host == "db"
        assert config.database.port == 5433
        assert config.database.pool.size == 10

    def test_required_all_reported(self):
        with pytest.raises(ConfigValidationError) as excinfo:
            validate_config(RequiredConfig, {"OTHER": 1})
        assert set(excinfo.value.paths) == {"API_KEY", "SECRET", "database.url"}
        for path in excinfo.value.paths:
            assert path in str(excinfo.value)

    def test_type_errors_all_reported(self):
        raw = {"PORT": "abc", "RATIO": "high", "database": {"port": "x"}}
        with pytest.raises(ConfigValidationError) as excinfo:
            validate_config(AppConfig, raw)
        assert set(excinfo.value.paths) == {"PORT", "RATIO", "database.port"}

    def test_subsection_not_mapping(self):
        with pytest.raises(ConfigValidationError) as excinfo:
            validate_config(AppConfig, {"database": "postgres://"})
        assert excinfo.value.paths == ["database"]


class TestFrozen:
    def test_read_only(self):
        config = validate_config(AppConfig, {})
        with pytest.raises(ReadOnlyConfigError):
            config.PORT = 1
        with pytest.raises(ReadOnlyConfigError):
            config["database.port"] = 1
        with pytest.raises(ReadOnlyConfigError):
            config.database.pool.size = 1
        with pytest.raises(ReadOnlyConfigError):
            config.database = AppConfig.database.klass()

    def test_containers(self):
        config = validate_config(AppConfig, {"TAGS": ["a"], "LIMITS": {"b": [1]}})
        assert isinstance(config.TAGS, tuple)
        assert isinstance(config.LIMITS, MappingProxyType)
        assert config.LIMITS["b"] == (1,)
        with pytest.raises(TypeError):
            config.LIMITS["c"] = 2  # type: ignore[index]

    def test_as_dict_thawed(self):
        config = validate_config(AppConfig, {"LIMITS": {"b": [1]}})
        out = config.as_dict()
        assert out["LIMITS"] == {"b": [1]}
        out["LIMITS"]["c"] = 1
        assert "c" not in config.LIMITS


class TestDefaultSchemas:
    def test_defaults(self):
        config = validate_config(DefaultConfig, {})
        assert config.PORT == 3000
        assert config.HOST == "localhost"
        assert config.LOG_LEVEL == "info"
        assert config.APP_ENV == "local"
        assert config.DATABASE_URL is None

    def test_environment_values(self):
        config = validate_config(
            DefaultConfig,
            {"PORT": "8080", "LOG_LEVEL": "debug", "APP_ENV": "production"},
        )
        assert config.PORT == 8080
        assert config.LOG_LEVEL == "debug"

    @pytest.mark.parametrize("port", ["0", "-5"])
    def test_positive_port(self, port):
        with pytest.raises(ConfigValidationError) as excinfo:
            validate_config(DefaultConfig, {"PORT": port})
        assert excinfo.value.paths == ["PORT"]

    def test_invalid_enum(self):
        with pytest.raises(ConfigValidationError) as excinfo:
            validate_config(DefaultConfig, {"LOG_LEVEL": "loud", "APP_ENV": "qa"})
        assert set(excinfo.value.paths) == {"LOG_LEVEL", "APP_ENV"}

    def test_remote_region(self):
        with pytest.raises(ConfigValidationError) as excinfo:
            validate_config(RemoteConfig, {})
        assert excinfo.value.paths == ["AWS_REGION"]

        with pytest.raises(ConfigValidationError):
            validate_config(RemoteConfig, {"AWS_REGION": ""})

        config = validate_config(RemoteConfig, {"AWS_REGION": "eu-west-3"})
        assert config.AWS_REGION == "eu-west-3"

    def test_schema_for_tier(self):
        assert schema_for_tier("local") is DefaultConfig
        assert schema_for_tier("production") is RemoteConfig

    def test_direct_validation(self):
        config = DefaultConfig()
        with pytest.raises(TraitError):
            config.PORT = 0
