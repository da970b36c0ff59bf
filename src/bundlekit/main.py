"""CLI entry point for Bundlekit."""

import json
import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from bundlekit import __version__
from bundlekit.config import get_settings
from bundlekit.utils.windows import configure_console
from bundlekit.validation.engine import BundleValidator
from bundlekit.validation.errors import BundleUsageError
from bundlekit.validation.models import Finding
from bundlekit.validation.report import EXIT_USAGE, ValidationReport

logger = logging.getLogger(__name__)

# Report goes to stdout; no hard wrapping so long paths stay on one line
console = Console(safe_box=True, highlight=False, soft_wrap=True)

SEVERITY_STYLES = {
    "error": ("✗", "ERROR", "red"),
    "warning": ("⚠", "WARNING", "yellow"),
}


def configure_logging(verbose: bool) -> None:
    """Configure stderr logging for the CLI process.

    Args:
        verbose: Log at DEBUG instead of the configured level.
    """
    level_name = "DEBUG" if verbose else get_settings().log_level.upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.WARNING),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stderr),
        ],
    )


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="bundlekit")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging on stderr")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Bundlekit - extension bundle validator.

    Checks a bundle's manifest, component files and server configurations,
    and reports every defect found in one pass.
    """
    configure_logging(verbose)
    configure_console()
    if ctx.invoked_subcommand is None:
        console.print(
            Panel.fit(
                "[bold blue]Bundlekit[/bold blue]\n\n"
                "[dim]Extension bundle validator[/dim]\n\n"
                f"Version: {__version__}\n\n"
                "Commands:\n"
                "  [green]bundlekit validate[/green] <bundle-path>  - Validate a bundle\n",
                title="Bundlekit",
                border_style="blue",
            )
        )


def render_finding(finding: Finding) -> None:
    """Print one finding line."""
    symbol, label, style = SEVERITY_STYLES[finding.severity.value]
    console.print(
        f"[{style}]{symbol} {label}[/{style}] "
        f"[bold]{finding.code.value}[/bold] "
        f"{escape(finding.subject)}: {escape(finding.message)}"
    )


def render_text(report: ValidationReport, bundle_path: Path, strict: bool) -> None:
    """Render a report for the terminal.

    Args:
        report: Validation report.
        bundle_path: Path given on the command line.
        strict: Whether warnings fail validation.
    """
    console.print(f"Validating bundle: {escape(str(bundle_path))}")
    if report.shape is not None:
        console.print(f"[dim]Manifest shape: {report.shape.value}[/dim]")
    console.print("")

    if not report.findings:
        console.print("[green]✓ No findings[/green]")
    for finding in report.findings:
        render_finding(finding)

    console.print("")
    console.print("════════════════════════════════════════════")
    console.print("[bold]Validation Results[/bold]")
    console.print("════════════════════════════════════════════")
    console.print(f"Errors: {len(report.errors)}")
    console.print(f"Warnings: {len(report.warnings)}")
    console.print("")

    if not report.is_valid:
        console.print("[bold red]✗ Bundle validation failed[/bold red]")
    elif report.warnings and strict:
        console.print("[bold red]✗ Bundle has warnings (strict mode)[/bold red]")
    elif report.warnings:
        console.print("[yellow]⚠ Bundle is valid but has warnings[/yellow]")
    else:
        console.print("[bold green]✓ Bundle is valid![/bold green]")


@cli.command()
@click.argument("bundle_path", type=click.Path(path_type=Path))
@click.option("--strict", is_flag=True, help="Treat warnings as errors for the exit status")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Report rendering",
)
@click.option(
    "--max-workers",
    "-p",
    type=click.IntRange(min=1),
    default=None,
    help="Maximum parallel workers",
)
def validate(bundle_path: Path, strict: bool, output_format: str, max_workers: int | None) -> None:
    """Validate the bundle at BUNDLE_PATH."""
    validator = BundleValidator(settings=get_settings(), max_workers=max_workers)
    try:
        report = validator.validate(bundle_path)
    except BundleUsageError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_USAGE)

    if output_format == "json":
        click.echo(json.dumps(report.to_dict(), indent=2))
    else:
        render_text(report, bundle_path, strict)

    sys.exit(report.exit_code(strict))


if __name__ == "__main__":
    cli()
