import sys

import pytest
from conftest import FakeBackend

from examnest import cli
from examnest.core.models import FailureKind, TaxonomyKind
from examnest.runtime.gateway import GatewayError
from examnest.runtime.library_controller import LibraryController


ADMIN = ["--username", "Examnest", "--password", "Examnest@3813"]


def _dispatch(controller: LibraryController, *argv: str) -> int:
    return cli.dispatch(controller, cli.build_parser().parse_args(list(argv)))


def test_no_subcommand_means_tui() -> None:
    assert cli.build_parser().parse_args([]).command is None


def test_upload_arguments_are_parsed() -> None:
    args = cli.build_parser().parse_args(
        ["upload", "notes.pdf", "--subject", "Physics", "--category", "NOTES", "--name", "Kinematics"]
    )
    assert (args.path, args.subject, args.category, args.name) == ("notes.pdf", "Physics", "NOTES", "Kinematics")
    assert args.username is None


def test_taxonomy_kind_is_restricted() -> None:
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args(["taxonomy-add", "semester", "S1"])


def test_list_filters_by_category(controller: LibraryController, capsys) -> None:
    assert _dispatch(controller, "list", "--category", "NOTES") == 0
    output = capsys.readouterr().out
    assert "2 file(s)" in output
    assert "Kinematics" in output
    assert "Optics" not in output


def test_search_prints_matches(controller: LibraryController, capsys) -> None:
    assert _dispatch(controller, "search", "optics") == 0
    assert "Optics" in capsys.readouterr().out


def test_fetch_failure_exits_non_zero(controller: LibraryController, backend: FakeBackend, capsys) -> None:
    backend.failures["list_files"] = GatewayError(FailureKind.NETWORK, "Connection error: refused")
    assert _dispatch(controller, "recent") == 1
    assert "Could not load resources" in capsys.readouterr().out


def test_admin_command_with_wrong_password_is_refused(controller: LibraryController, backend: FakeBackend) -> None:
    code = _dispatch(controller, "delete", "1", "--username", "Examnest", "--password", "nope")
    assert code == 1
    assert backend.calls == []


def test_taxonomy_add_runs_as_admin(controller: LibraryController, backend: FakeBackend, capsys) -> None:
    assert _dispatch(controller, "taxonomy-add", "subject", "Economics", *ADMIN) == 0
    assert "Economics" in backend.taxonomy[TaxonomyKind.SUBJECT]
    assert "Subject 'Economics' added." in capsys.readouterr().out


def test_download_unknown_file_fails(controller: LibraryController, capsys) -> None:
    assert _dispatch(controller, "download", "404") == 1
    assert "File not found: 404" in capsys.readouterr().out


def test_download_saves_into_output_dir(controller: LibraryController, tmp_path) -> None:
    assert _dispatch(controller, "download", "1", "--output", str(tmp_path)) == 0
    assert (tmp_path / "Kinematics Notes.pdf").exists()


def test_feedback_reports_validation_error(controller: LibraryController, backend: FakeBackend) -> None:
    code = _dispatch(controller, "feedback", "--name", "Asha", "--email", "asha", "--message", "hi")
    assert code == 1
    assert backend.feedback == []


def test_main_exits_with_code_2_without_backend_config(monkeypatch, capsys) -> None:
    def _missing(*, console_logging: bool):
        raise RuntimeError("Missing backend configuration: set EXAMNEST_BACKEND_URL (environment or .env)")

    monkeypatch.setattr(cli, "_build_controller", _missing)
    monkeypatch.setattr(sys, "argv", ["examnest", "list"])

    with pytest.raises(SystemExit) as excinfo:
        cli.main()

    assert excinfo.value.code == 2
    assert "EXAMNEST_BACKEND_URL" in capsys.readouterr().err
