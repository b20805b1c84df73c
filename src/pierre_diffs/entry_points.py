import argparse
import asyncio
import os
import sys

from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from pierre_diffs.net.bridge import theme_for
from pierre_diffs.net.protocol import DiffStyle, OverflowMode, RenderInput, render_command
from pierre_diffs.net.server import diff_session, start_server
from pierre_diffs.net.server_config import ServerConfig
from pierre_diffs.state.diff_state import DiffResult
from pierre_diffs.utils.config import config
from pierre_diffs.utils.edit_engine import DiffResultProcessor, EditTool
from pierre_diffs.utils.error_handling import DiffError
from pierre_diffs.utils.file_loader import FileLoader
from pierre_diffs.utils.languages import detect_language
from pierre_diffs.utils.logger import log
from pierre_diffs.utils.validation import ValidationError, validate_network_config

DEFAULT_HOST = "127.0.0.1"


def _create_argument_parser():
    """Create and configure the command-line argument parser."""
    parser = argparse.ArgumentParser(prog="pierre-diffs", description="pierre-diffs: diffs of automated file edits")
    commands = parser.add_subparsers(dest="command", required=True)

    payload_args = argparse.ArgumentParser(add_help=False)
    payload_args.add_argument(
        "--tool", required=True, choices=[tool.value for tool in EditTool], help="Tool that produced the payload"
    )
    payload_args.add_argument("--payload", required=True, help="Path to the JSON tool payload ('-' for stdin)")

    render_args = argparse.ArgumentParser(add_help=False)
    render_args.add_argument(
        "--diff-style", choices=[s.value for s in DiffStyle], default=config.default_diff_style, help="Diff layout"
    )
    render_args.add_argument(
        "--overflow", choices=[m.value for m in OverflowMode], default=config.default_overflow, help="Long line handling"
    )
    render_args.add_argument("--light", action="store_true", help="Use the light theme")

    commands.add_parser("preview", parents=[payload_args], help="Print a summary of the diff")
    commands.add_parser("encode", parents=[payload_args, render_args], help="Print the renderDiff command frame")

    serve = commands.add_parser("serve", parents=[payload_args, render_args], help="Serve the diff to renderers")
    serve.add_argument("--host", type=str, default=None, help=f"Bind address (default: {DEFAULT_HOST})")
    serve.add_argument("--port", type=int, default=None, help=f"Port (default: {config.bridge_port})")
    serve.add_argument("--max-connections", type=int, default=4, help="Maximum concurrent renderer sessions")
    return parser


def _apply_environment_overrides(args):
    """Fill host/port from PIERRE_HOST/PIERRE_PORT when not given on the command line."""
    if args.command != "serve":
        return
    if args.host is None:
        args.host = os.environ.get("PIERRE_HOST") or DEFAULT_HOST
    if args.port is None:
        args.port = os.environ.get("PIERRE_PORT") or config.bridge_port


def _validate_configuration(args):
    if args.command != "serve":
        return
    try:
        args.host, args.port = validate_network_config(args.host, args.port)
    except ValidationError as e:
        log(f"Configuration validation failed: {e}")
        sys.stderr.write(f"Configuration Error: {e}\n")
        sys.stderr.write("Use --help for usage information.\n")
        sys.exit(1)


def _read_payload(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    try:
        with open(path, encoding="utf-8") as f:
            return f.read()
    except (OSError, UnicodeDecodeError) as e:
        log.error(f"[IO] Failed reading payload {path}: {e}")
        sys.stderr.write(f"Error: cannot read payload {path}: {e}\n")
        sys.exit(1)


def _build_result(args) -> DiffResult:
    payload = _read_payload(args.payload)
    processor = DiffResultProcessor(FileLoader(os.getcwd()))
    try:
        return asyncio.run(processor.build_result(payload, args.tool))
    except DiffError as e:
        sys.stderr.write(f"Error: {e}\n")
        sys.exit(1)


def _preview(result: DiffResult, console: Console) -> None:
    language = detect_language(result.file_name)

    summary = Table(show_header=False, box=None)
    summary.add_column(style="bold")
    summary.add_column()
    summary.add_row("File", result.file_path)
    summary.add_row("Language", language or "plain text")
    summary.add_row("Change", "new file" if result.is_creation else "modified")
    summary.add_row("Lines", f"{len(result.original.splitlines())} -> {len(result.updated.splitlines())}")
    console.print(summary)

    if result.original == result.updated:
        console.print("[dim]No changes.[/dim]")
        return
    console.print(Syntax(result.updated, language or "text", line_numbers=True, word_wrap=True))


def _execute_command(args, console: Console) -> None:
    result = _build_result(args)

    if args.command == "preview":
        _preview(result, console)
        return

    diff_style = DiffStyle(args.diff_style)
    overflow = OverflowMode(args.overflow)

    if args.command == "encode":
        render_input = RenderInput.from_diff_result(result, diff_style, overflow)
        sys.stdout.write(render_command(render_input).to_message() + "\n")
        return

    server_config = ServerConfig(bind_address=args.host, port=args.port, max_connections=args.max_connections)
    on_session = diff_session(result, diff_style, overflow, theme_for(not args.light))
    sys.stderr.write(f"Serving {result.file_name} on ws://{server_config.bind_address}:{server_config.port}\n")
    try:
        asyncio.run(start_server(on_session=on_session, server_config=server_config))
    except KeyboardInterrupt:
        log("Server stopped by user (KeyboardInterrupt)")
        sys.stderr.write("\n[pierre-diffs] Server stopped by user\n")


def main(argv=None):
    """Main entry point for the pierre-diffs command."""
    parser = _create_argument_parser()
    args = parser.parse_args(argv)

    _apply_environment_overrides(args)
    _validate_configuration(args)
    _execute_command(args, Console())


if __name__ == "__main__":
    main()
