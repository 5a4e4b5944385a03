"""
Interactive console for Lumo (``lumo-repl``).

Author: xwest
"""

import logging
import sys

import click

try:
    import readline  # noqa: F401  (line editing and history for input())
except ImportError:
    readline = None

from .. import __version__
from ..options import CompilerOptions, Target
from .runtime import NodeRuntime
from .session import ReplResult, ReplSession

LOG_FORMAT = "%(asctime)s [%(levelname)-5.5s] %(name)s: %(message)s"


def _configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S"))
    logger = logging.getLogger("lumo")
    logger.handlers[:] = [handler]
    logger.setLevel(level)
    logger.propagate = False


def _show(result: ReplResult, show_js: bool, color: bool) -> None:
    for warning in result.warnings:
        click.echo(click.style(warning.short(), fg="yellow"), err=True, color=color)
    if show_js and result.javascript:
        click.echo(click.style(result.javascript.rstrip("\n"), fg="bright_black"), color=color)
    if result.output:
        click.echo(result.output, color=color)
    if result.ok:
        if result.value is not None:
            click.echo(click.style(result.value, fg="cyan"), color=color)
        return
    message = result.error_line()
    if message:
        click.echo(click.style(" ERROR. ", fg="black", bg="red") + " " + message,
                   err=True, color=color)


@click.command()
@click.option("--target", type=click.Choice([t.value for t in Target]), default=Target.NODE.value,
              show_default=True, help="Environment the compiled fragments are generated for.")
@click.option("--strict", is_flag=True, help="Reject lines with type errors instead of warning.")
@click.option("--no-type-check", "no_type_check", is_flag=True, help="Skip type checking entirely.")
@click.option("--show-js", is_flag=True, help="Echo the JavaScript generated for each line.")
@click.option("--plain", "-p", is_flag=True, help="Strip ANSI color codes from the output.")
@click.option("--verbose", "-v", default=0, count=True, help="Log compiler activity (-vv for debug).")
@click.option("--node", "node_executable", default="node", show_default=True,
              help="Node.js executable used to run compiled code.")
def main(target: str, strict: bool, no_type_check: bool, show_js: bool, plain: bool,
         verbose: int, node_executable: str):
    _configure_logging(verbose)
    color = False if plain else None

    options = CompilerOptions(target=target, strict=strict, type_check=not no_type_check)
    session = ReplSession(options, runtime=NodeRuntime(node_executable))

    click.echo(f"Lumo {__version__} REPL ({options.target.value} target); type .help for commands, Ctrl+D to exit.",
               color=color)
    prompt = "lumo> " if plain else "\033[36mlumo>\033[0m "

    try:
        while True:
            try:
                line = input(prompt)
            except (KeyboardInterrupt, EOFError):
                click.echo("")
                break

            result = session.evaluate(line)
            if result.exit:
                break
            if result.clear:
                click.clear()
                continue
            _show(result, show_js, color)
    finally:
        session.close()


if __name__ == "__main__":
    main()
