# ============================================================================
# tests/unit/test_cli.py
# ============================================================================
"""
Tests for the command line tools that need no database or provider
"""

import pytest

from lab_reconciliation import __main__ as cli


@pytest.fixture(autouse=True)
def no_logging_setup(monkeypatch):
    # setup_logging replaces root handlers; keep pytest's capture intact
    monkeypatch.setattr(cli, "setup_logging", lambda **kwargs: None)


def test_name_key_command(capsys):
    """Test name-key command prints the key"""
    assert cli.main(["name-key", "Краснова Евгения"]) == 0
    assert capsys.readouterr().out.strip() == "evgeniia krasnova"


def test_convert_command(capsys):
    """Test convert command prints the canonical value"""
    assert cli.main(["convert", "7.2", "g/L", "g/dL", "--biomarker", "hemoglobin"]) == 0
    assert capsys.readouterr().out.strip() == "0.72 g/dL (factor 0.1)"


def test_convert_without_path(capsys):
    """Test convert reports a missing conversion path"""
    assert cli.main(["convert", "3", "furlongs", "g/dL"]) == 0
    assert "(no conversion)" in capsys.readouterr().out


def test_command_required():
    """Test running without a command exits"""
    with pytest.raises(SystemExit):
        cli.main([])
