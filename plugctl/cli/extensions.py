"""CLI commands for managing extensions"""

import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from plugctl.core.extensions.exceptions import ConflictError, ExtensionError
from plugctl.core.extensions.manager import ExtensionManager
from plugctl.core.extensions.models import InstallResult, TargetPlatform

console = Console()


def _manager(ctx: click.Context) -> ExtensionManager:
    return ExtensionManager(config=ctx.obj["config"] if ctx.obj else None)


def _fail(e: ExtensionError) -> None:
    console.print(f"[red]Error:[/red] {escape(str(e))}")
    if isinstance(e, ConflictError):
        console.print("[yellow]Another plugctl process is updating the catalog. Retry in a moment.[/yellow]")
    sys.exit(1)


def _target_platform(os_name: Optional[str], arch: Optional[str]) -> TargetPlatform:
    current = TargetPlatform.current()
    try:
        return TargetPlatform(os=os_name or current.os, arch=arch or current.arch)
    except ValueError as e:
        raise click.BadParameter(str(e))


def _report_install(result: InstallResult) -> None:
    console.print(f"[green]✔ Installed {result.name} v{result.version}[/green]")
    console.print(f"  Platform: {result.platform}")
    console.print(f"  Binary: {result.path}")


platform_options = [
    click.option("--os", "os_name", default=None, help="Target OS (default: current)"),
    click.option("--arch", default=None, help="Target architecture (default: current)"),
]


def with_platform_options(func):
    for option in reversed(platform_options):
        func = option(func)
    return func


@click.group(name="extensions")
def extensions_group():
    """Install and inspect extensions."""
    pass


@extensions_group.command(name="refresh")
@click.pass_context
def refresh_cmd(ctx):
    """Download the latest extension catalog."""
    try:
        with _manager(ctx) as manager:
            path = manager.refresh_catalog()
    except ExtensionError as e:
        _fail(e)
    console.print(f"[green]✔ Catalog updated: {path}[/green]")


@extensions_group.command(name="list")
@click.option("--installed", is_flag=True, help="Only show installed extensions")
@click.pass_context
def list_cmd(ctx, installed: bool):
    """List extensions in the catalog."""
    try:
        with _manager(ctx) as manager:
            installed_names = manager.list_installed()
            if installed:
                if not installed_names:
                    console.print("No extensions installed.")
                    return
                # Local copy only; a refreshed catalog may no longer list locally installed archives
                known = {e.name: e for e in manager.store.load_or_empty().extensions}
                extensions = [known.get(name) for name in installed_names]
                names = installed_names
            else:
                extensions = manager.list_available()
                names = [extension.name for extension in extensions]
    except ExtensionError as e:
        _fail(e)

    table = Table(title=f"Extensions ({len(names)})")
    table.add_column("Name")
    table.add_column("Latest")
    table.add_column("Releases", justify="right")
    table.add_column("Installed")
    table.add_column("Description")

    for name, extension in zip(names, extensions):
        if extension is None:
            table.add_row(name, "-", "-", "Yes", "[dim]not in catalog[/dim]")
            continue
        latest = extension.latest
        table.add_row(
            extension.name,
            latest.version if latest else "-",
            str(len(extension.releases)),
            "Yes" if extension.name in installed_names else "No",
            escape(extension.description or ""),
        )

    console.print(table)


@extensions_group.command(name="show")
@click.argument("name")
@click.pass_context
def show_cmd(ctx, name: str):
    """Show the releases of an extension."""
    try:
        with _manager(ctx) as manager:
            extension = manager.lookup(name)
            installed_versions = manager.installer.installed_versions(name)
    except ExtensionError as e:
        _fail(e)

    console.print(f"[bold]{escape(extension.name)}[/bold]")
    if extension.description:
        console.print(f"  {escape(extension.description)}")

    table = Table()
    table.add_column("Version")
    table.add_column("Platforms")
    table.add_column("Installed")
    for release in extension.releases:
        table.add_row(
            release.version,
            ", ".join(sorted(release.digests)) or "-",
            "Yes" if release.version in installed_versions else "",
        )
    console.print(table)


@extensions_group.command(name="install")
@click.argument("name")
@click.option("--version", "version", default=None, help="Release version (default: latest)")
@with_platform_options
@click.pass_context
def install_cmd(ctx, name: str, version: Optional[str], os_name: Optional[str], arch: Optional[str]):
    """Install a catalog extension by name."""
    try:
        with _manager(ctx) as manager:
            result = manager.install(name, version, _target_platform(os_name, arch))
    except ExtensionError as e:
        _fail(e)
    _report_install(result)


@extensions_group.command(name="install-archive")
@click.argument("archive", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@with_platform_options
@click.pass_context
def install_archive_cmd(ctx, archive: Path, os_name: Optional[str], arch: Optional[str]):
    """Install an extension from a local .tar.gz archive."""
    console.print(f"[yellow]extracting archive at {escape(str(archive))}...[/yellow]")
    try:
        with _manager(ctx) as manager:
            result = manager.install_from_archive(archive, _target_platform(os_name, arch))
    except ExtensionError as e:
        _fail(e)
    _report_install(result)


@extensions_group.command(name="install-url")
@click.argument("url")
@with_platform_options
@click.pass_context
def install_url_cmd(ctx, url: str, os_name: Optional[str], arch: Optional[str]):
    """Install an extension from a .tar.gz archive URL."""
    console.print(f"[yellow]fetching archive at {escape(url)}...[/yellow]")
    try:
        with _manager(ctx) as manager:
            result = manager.install_from_url(url, _target_platform(os_name, arch))
    except ExtensionError as e:
        _fail(e)
    _report_install(result)


@extensions_group.command(name="uninstall")
@click.argument("name")
@click.pass_context
def uninstall_cmd(ctx, name: str):
    """Remove an installed extension."""
    try:
        with _manager(ctx) as manager:
            manager.uninstall(name)
    except ExtensionError as e:
        _fail(e)
    console.print(f"[green]✔ Uninstalled {escape(name)}[/green]")
