import pytest

from examnest.core.config import REPO_ROOT, Settings


def test_empty_backend_env_is_ignored(monkeypatch) -> None:
    monkeypatch.setenv("EXAMNEST_BACKEND_URL", "")
    settings = Settings(_env_file=None)
    assert settings.backend_url is None


def test_require_backend_names_missing_variables(monkeypatch) -> None:
    monkeypatch.delenv("EXAMNEST_BACKEND_URL", raising=False)
    monkeypatch.delenv("EXAMNEST_BACKEND_KEY", raising=False)
    settings = Settings(_env_file=None)

    with pytest.raises(RuntimeError, match="EXAMNEST_BACKEND_URL, EXAMNEST_BACKEND_KEY"):
        settings.require_backend()


def test_require_backend_strips_trailing_slash() -> None:
    settings = Settings(
        _env_file=None,
        EXAMNEST_BACKEND_URL="https://project.backend.test/",
        EXAMNEST_BACKEND_KEY="anon-key",
    )
    assert settings.require_backend() == ("https://project.backend.test", "anon-key")


def test_repo_root_and_default_paths() -> None:
    settings = Settings(_env_file=None)
    assert (REPO_ROOT / "pyproject.toml").exists()
    assert settings.state_path == REPO_ROOT / ".examnest_state"
    assert settings.snapshot_path == REPO_ROOT / ".examnest_state" / "examnest_files_cache.json"
    assert settings.downloads_path == REPO_ROOT / "downloads"
    assert settings.max_upload_bytes == 50 * 1024 * 1024
    assert (settings.admin_username, settings.admin_password) == ("Examnest", "Examnest@3813")


def test_env_overrides_table_names(monkeypatch) -> None:
    monkeypatch.setenv("EXAMNEST_FILES_TABLE", "papers")
    monkeypatch.setenv("EXAMNEST_MAX_UPLOAD_MB", "10")
    settings = Settings(_env_file=None)
    assert settings.files_table == "papers"
    assert settings.max_upload_bytes == 10 * 1024 * 1024
