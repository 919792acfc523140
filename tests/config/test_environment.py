"""Test environment tier resolution."""

import logging

import pytest
from hypothesis import given
from hypothesis import strategies as st

from strata.config.environment import is_valid_tier, resolve_tier
from strata.config.types import LOCAL, TIERS

invalid_tiers = st.text(min_size=1).filter(lambda s: s not in TIERS)


@pytest.mark.parametrize("tier", TIERS)
def test_primary(tier: str):
    assert resolve_tier({"APP_ENV": tier}) == tier


@pytest.mark.parametrize("tier", TIERS)
def test_secondary_only(tier: str):
    assert resolve_tier({"NODE_ENV": tier}) == tier


def test_nothing_set():
    assert resolve_tier({}) == LOCAL


def test_invalid_secondary_only(caplog):
    with caplog.at_level(logging.WARNING):
        assert resolve_tier({"NODE_ENV": "staging"}) == LOCAL
    assert "Invalid NODE_ENV value 'staging'" in caplog.text
    assert "defaulting to 'local'" in caplog.text


@given(primary=invalid_tiers, secondary=st.sampled_from(TIERS))
def test_invalid_primary_falls_back(primary: str, secondary: str):
    assert resolve_tier({"APP_ENV": primary, "NODE_ENV": secondary}) == secondary


@given(primary=invalid_tiers, secondary=invalid_tiers)
def test_both_invalid(primary: str, secondary: str):
    assert resolve_tier({"APP_ENV": primary, "NODE_ENV": secondary}) == LOCAL


def test_warnings(caplog):
    with caplog.at_level(logging.WARNING):
        resolve_tier({"APP_ENV": "staging", "NODE_ENV": "production"})
    assert "falling back" in caplog.text

    caplog.clear()
    with caplog.at_level(logging.WARNING):
        resolve_tier({"APP_ENV": "staging"})
    assert "defaulting to 'local'" in caplog.text

    caplog.clear()
    with caplog.at_level(logging.WARNING):
        assert resolve_tier({"APP_ENV": "test", "NODE_ENV": "production"}) == "test"
    assert "differ" in caplog.text


def test_custom_variables():
    environ = {"STAGE": "production", "APP_ENV": "test"}
    assert resolve_tier(environ, primary="STAGE") == "production"


def test_is_valid_tier():
    assert is_valid_tier("development")
    assert not is_valid_tier("dev")
    assert not is_valid_tier(None)
