import pytest

from avm_calendar.config import int_env


def test_int_env_default(monkeypatch):
    monkeypatch.delenv("AVM_TEST_INT", raising=False)
    assert int_env("AVM_TEST_INT", 7) == 7


def test_int_env_parses(monkeypatch):
    monkeypatch.setenv("AVM_TEST_INT", "42")
    assert int_env("AVM_TEST_INT", 7) == 42


def test_int_env_rejects_garbage(monkeypatch):
    monkeypatch.setenv("AVM_TEST_INT", "forty")
    with pytest.raises(RuntimeError, match="AVM_TEST_INT"):
        int_env("AVM_TEST_INT", 7)
