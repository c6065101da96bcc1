from __future__ import annotations

import argparse
import asyncio
import getpass
import subprocess
import sys
from collections.abc import Awaitable, Callable, Sequence
from pathlib import Path

from rich.console import Console
from rich.table import Table

from examnest.core.models import AcademicFile, ActionResult, TaxonomyKind, UploadRequest


console = Console()


def _add_admin_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--username", default=None, help="Admin username (prompted when omitted)")
    parser.add_argument("--password", default=None, help="Admin password (prompted when omitted)")


def _kind_arg(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("kind", choices=[kind.value for kind in TaxonomyKind])


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Exam Nest (no subcommand runs the TUI)")
    subparsers = parser.add_subparsers(dest="command", required=False)

    subparsers.add_parser("tui", help="Browse the library in the terminal UI")

    list_parser = subparsers.add_parser("list", help="List files, newest first")
    list_parser.add_argument("--category", default=None)
    list_parser.add_argument("--subject", default=None)

    search_parser = subparsers.add_parser("search", help="Search file names, subjects and categories")
    search_parser.add_argument("query")

    subparsers.add_parser("recent", help="Show the most recent uploads")
    subparsers.add_parser("taxonomy", help="Show subjects and categories")

    upload_parser = subparsers.add_parser("upload", help="Upload a PDF (admin)")
    upload_parser.add_argument("path")
    upload_parser.add_argument("--subject", required=True)
    upload_parser.add_argument("--category", required=True)
    upload_parser.add_argument("--name", default=None, help="Display title (defaults to the file name)")
    _add_admin_args(upload_parser)

    delete_parser = subparsers.add_parser("delete", help="Delete a file record (admin)")
    delete_parser.add_argument("file_id")
    _add_admin_args(delete_parser)

    rename_parser = subparsers.add_parser("rename", help="Rename a file's display title (admin)")
    rename_parser.add_argument("file_id")
    rename_parser.add_argument("new_name")
    _add_admin_args(rename_parser)

    taxonomy_add = subparsers.add_parser("taxonomy-add", help="Add a subject or category (admin)")
    _kind_arg(taxonomy_add)
    taxonomy_add.add_argument("name")
    _add_admin_args(taxonomy_add)

    taxonomy_rename = subparsers.add_parser(
        "taxonomy-rename",
        help="Rename a subject or category and relabel its files (admin)",
    )
    _kind_arg(taxonomy_rename)
    taxonomy_rename.add_argument("old_name")
    taxonomy_rename.add_argument("new_name")
    _add_admin_args(taxonomy_rename)

    taxonomy_delete = subparsers.add_parser(
        "taxonomy-delete",
        help="Delete a subject or category; files keep their label (admin)",
    )
    _kind_arg(taxonomy_delete)
    taxonomy_delete.add_argument("name")
    _add_admin_args(taxonomy_delete)

    download_parser = subparsers.add_parser("download", help="Download a file's PDF")
    download_parser.add_argument("file_id")
    download_parser.add_argument("--output", default=None, help="Target directory (default: downloads dir)")

    feedback_parser = subparsers.add_parser("feedback", help="Send feedback to the maintainers")
    feedback_parser.add_argument("--name", required=True)
    feedback_parser.add_argument("--email", required=True)
    feedback_parser.add_argument("--message", required=True)

    test_parser = subparsers.add_parser("test", help="Run all tests with pytest")
    test_parser.add_argument(
        "pytest_args",
        nargs=argparse.REMAINDER,
        help="Optional extra pytest args; use `--` before args (e.g. examnest test -- -k search)",
    )

    return parser


def _files_table(files: Sequence[AcademicFile], title: str) -> Table:
    table = Table(title=title, show_lines=False)
    table.add_column("ID", style="dim")
    table.add_column("Name", style="bold")
    table.add_column("Subject")
    table.add_column("Category")
    table.add_column("Uploaded")
    for file in files:
        table.add_row(file.id, file.file_name, file.subject, file.category, file.upload_date)
    return table


def _build_controller(*, console_logging: bool):
    from examnest.core.config import get_settings
    from examnest.core.logging_setup import configure_logging
    from examnest.runtime.gateway import BackendGateway
    from examnest.runtime.library_controller import LibraryController
    from examnest.runtime.snapshot_cache import SnapshotCache

    settings = get_settings()
    configure_logging(settings, console=console_logging)
    gateway = BackendGateway.from_settings(settings)
    return LibraryController(settings, gateway, SnapshotCache.from_settings(settings))


def _load(controller) -> bool:
    if asyncio.run(controller.refresh()):
        return True
    console.print(controller.fetch_error, style="red", markup=False)
    return False


def _report(result: ActionResult) -> int:
    if result.ok:
        console.print(result.message, style="green", markup=False)
        return 0
    console.print(result.message, style="red", markup=False)
    return 1


def _run_admin(controller, args: argparse.Namespace, action: Callable[[], Awaitable[ActionResult]]) -> int:
    username = args.username or input("Username: ")
    password = args.password or getpass.getpass("Password: ")
    if not controller.login(username, password):
        console.print("Invalid credentials.", style="red")
        return 1

    async def _flow() -> ActionResult:
        await controller.refresh()
        return await action()

    return _report(asyncio.run(_flow()))


def _find_file_or_report(controller, file_id: str) -> AcademicFile | None:
    file = controller.find_file(file_id)
    if file is None:
        console.print(f"File not found: {file_id}", style="red", markup=False)
    return file


def run_list(controller, args: argparse.Namespace) -> int:
    if not _load(controller):
        return 1
    files = [
        file
        for file in controller.files
        if (args.category is None or file.category == args.category)
        and (args.subject is None or file.subject == args.subject)
    ]
    console.print(_files_table(files, title=f"{len(files)} file(s)"))
    return 0


def run_search(controller, args: argparse.Namespace) -> int:
    if not _load(controller):
        return 1
    results = controller.search(args.query)
    console.print(_files_table(results, title=f"Matches for '{args.query}'"))
    return 0


def run_recent(controller, args: argparse.Namespace) -> int:
    if not _load(controller):
        return 1
    console.print(_files_table(controller.recent_files, title="Recently Uploaded"))
    return 0


def run_taxonomy(controller, args: argparse.Namespace) -> int:
    if not _load(controller):
        return 1
    table = Table(title="Taxonomy")
    table.add_column("Kind")
    table.add_column("Source", style="dim")
    table.add_column("Labels")
    for kind in TaxonomyKind:
        table.add_row(
            kind.label,
            controller.taxonomy.source(kind).value,
            ", ".join(controller.taxonomy.labels(kind)),
        )
    console.print(table)
    return 0


def run_download(controller, args: argparse.Namespace) -> int:
    from examnest.runtime.gateway import GatewayError

    if not _load(controller):
        return 1
    file = _find_file_or_report(controller, args.file_id)
    if file is None:
        return 1
    target_dir = Path(args.output).expanduser() if args.output else None
    try:
        target = asyncio.run(controller.download(file, target_dir))
    except GatewayError as exc:
        console.print(f"Download failed: {exc.message}", style="red", markup=False)
        return 1
    console.print(f"Saved {file.file_name} to {target}", markup=False)
    return 0


def run_tests(args: argparse.Namespace) -> int:
    cmd = [sys.executable, "-m", "pytest"]
    if args.pytest_args:
        cmd.extend(args.pytest_args)
    print("Running:", " ".join(cmd))
    return subprocess.call(cmd)


def dispatch(controller, args: argparse.Namespace) -> int:
    if args.command == "list":
        return run_list(controller, args)
    if args.command == "search":
        return run_search(controller, args)
    if args.command == "recent":
        return run_recent(controller, args)
    if args.command == "taxonomy":
        return run_taxonomy(controller, args)
    if args.command == "download":
        return run_download(controller, args)
    if args.command == "feedback":
        return _report(asyncio.run(controller.submit_feedback(args.name, args.email, args.message)))

    if args.command == "upload":
        request = UploadRequest(path=args.path, subject=args.subject, category=args.category, display_name=args.name)
        return _run_admin(controller, args, lambda: controller.upload(request))
    if args.command == "delete":
        return _run_admin(controller, args, lambda: controller.delete_file(args.file_id))
    if args.command == "rename":
        return _run_admin(controller, args, lambda: controller.rename_file(args.file_id, args.new_name))

    kind = TaxonomyKind(args.kind) if hasattr(args, "kind") else None
    if args.command == "taxonomy-add" and kind is not None:
        return _run_admin(controller, args, lambda: controller.add_taxonomy(kind, args.name))
    if args.command == "taxonomy-rename" and kind is not None:
        return _run_admin(controller, args, lambda: controller.rename_taxonomy(kind, args.old_name, args.new_name))
    if args.command == "taxonomy-delete" and kind is not None:
        return _run_admin(controller, args, lambda: controller.delete_taxonomy(kind, args.name))

    raise ValueError(f"Unknown command: {args.command}")


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()

    if args.command == "test":
        raise SystemExit(run_tests(args))

    try:
        controller = _build_controller(console_logging=args.command not in {None, "tui"})
    except RuntimeError as exc:
        print(str(exc), file=sys.stderr)
        raise SystemExit(2) from exc

    if args.command in {None, "tui"}:
        from examnest.tui.app import run_tui

        run_tui(controller)
        return

    try:
        raise SystemExit(dispatch(controller, args))
    finally:
        controller.close()


if __name__ == "__main__":
    main()
