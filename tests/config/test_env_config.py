import importlib

import metatag_backend.config as config


def test_env_int_parses_and_clamps(monkeypatch):
    monkeypatch.setenv("METATAG_T_INT", "42")
    assert config._env_int(5, "METATAG_T_INT") == 42
    monkeypatch.setenv("METATAG_T_INT", "not-a-number")
    assert config._env_int(5, "METATAG_T_INT") == 5
    monkeypatch.setenv("METATAG_T_INT", "1")
    assert config._env_int(5, "METATAG_T_INT", min_value=10) == 10
    monkeypatch.setenv("METATAG_T_INT", "999")
    assert config._env_int(5, "METATAG_T_INT", max_value=100) == 100


def test_env_float_and_bool(monkeypatch):
    monkeypatch.setenv("METATAG_T_FLOAT", "2.5")
    assert config._env_float(1.0, "METATAG_T_FLOAT") == 2.5
    monkeypatch.setenv("METATAG_T_FLOAT", "0")
    assert config._env_float(1.0, "METATAG_T_FLOAT", min_value=0.1) == 0.1

    monkeypatch.setenv("METATAG_T_BOOL", "false")
    assert config._env_bool(True, "METATAG_T_BOOL") is False
    monkeypatch.delenv("METATAG_T_BOOL")
    assert config._env_bool(True, "METATAG_T_BOOL") is True


def test_env_raw_uses_first_non_blank_name(monkeypatch):
    monkeypatch.setenv("METATAG_T_A", "   ")
    monkeypatch.setenv("METATAG_T_B", " /opt/exiftool ")
    assert config._env_raw("METATAG_T_A", "METATAG_T_B") == "/opt/exiftool"
    assert config._env_raw("METATAG_T_MISSING", default="d") == "d"


def test_module_constants_follow_environment(monkeypatch):
    monkeypatch.setenv("METATAG_EXIFTOOL_TIMEOUT_MS", "1500")
    monkeypatch.setenv("METATAG_CHECK_PERMISSIONS", "0")
    monkeypatch.setenv("METATAG_EXIFTOOL_BIN", "/usr/local/bin/exiftool")
    monkeypatch.delenv("METATAG_EXIFTOOL_PATH", raising=False)
    try:
        reloaded = importlib.reload(config)
        assert reloaded.EXIFTOOL_TIMEOUT_MS == 1500
        assert reloaded.CHECK_FILE_PERMISSIONS is False
        assert reloaded.EXIFTOOL_BIN == "/usr/local/bin/exiftool"
    finally:
        monkeypatch.undo()
        importlib.reload(config)


def test_defaults(monkeypatch):
    for name in ("METATAG_EXIFTOOL_TIMEOUT_MS", "METATAG_CHECK_PERMISSIONS", "METATAG_SHUTDOWN_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)
    try:
        reloaded = importlib.reload(config)
        assert reloaded.EXIFTOOL_TIMEOUT_MS == 5000
        assert reloaded.CHECK_FILE_PERMISSIONS is True
        assert reloaded.SHUTDOWN_TIMEOUT_S == 5.0
        assert reloaded.MAX_KEYWORD_ENTRIES == 50
    finally:
        monkeypatch.undo()
        importlib.reload(config)
