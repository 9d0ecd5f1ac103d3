import logging
from contextlib import contextmanager
from pathlib import Path
from typing import List, Optional

import httpx
import typer
from packaging.version import InvalidVersion, Version
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ..client import BintrayClient
from ..config import CONFIG_FILE, DEFAULT_BASE_URL, load_settings, save_settings
from ..domain.errors import BintrayError
from ..domain.models import Settings
from ..services.release import ReleaseService
from ..ui.progress import ProgressManager

app = typer.Typer()
console = Console()


def get_client() -> BintrayClient:
    return BintrayClient.from_settings(load_settings())


def sort_versions(labels: List[str]) -> List[str]:
    """sort PEP 440 labels ascending; other labels keep server order after them."""
    parsed = []
    other = []
    for label in labels:
        try:
            parsed.append((Version(label), label))
        except InvalidVersion:
            other.append(label)
    return [label for _, label in sorted(parsed)] + other


def parse_meta(pairs: List[str]) -> dict:
    meta = {}
    for pair in pairs:
        if "=" not in pair:
            raise typer.BadParameter(f"expected KEY=VALUE, got '{pair}'")
        key, value = pair.split("=", 1)
        meta[key.strip()] = value
    return meta


@contextmanager
def handle_errors():
    """turn client errors into a red message and exit code 1."""
    try:
        yield
    except BintrayError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    except httpx.HTTPError as e:
        console.print(f"[red]Connection error:[/red] {e}")
        raise typer.Exit(1)
    except OSError as e:
        console.print(f"[red]File error:[/red] {e}")
        raise typer.Exit(1)


@app.callback()
def main_callback(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log every request")):
    """command line access to the Bintray REST API."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=console, show_path=False)],
        )


@app.command()
def exists(subject: str, repository: str, package: str):
    """check whether a package exists."""
    with handle_errors(), get_client() as client:
        found = client.package_exists(subject, repository, package)
    if found:
        console.print(f"[green]✓[/green] {subject}/{repository}/{package} exists")
    else:
        console.print(f"[yellow]{subject}/{repository}/{package} not found[/yellow]")
        raise typer.Exit(1)


@app.command()
def versions(
    subject: str,
    repository: str,
    package: str,
    sort: bool = typer.Option(False, "--sort", help="Sort versions ascending"),
):
    """list the versions of a package."""
    with handle_errors(), get_client() as client:
        labels = client.get_versions(subject, repository, package)

    if sort:
        labels = sort_versions(labels)
    if not labels:
        console.print("[yellow]No versions found.[/yellow]")
        return

    table = Table(title=f"{subject}/{repository}/{package}")
    table.add_column("Version", style="cyan")
    for label in labels:
        table.add_row(label)
    console.print(table)


@app.command("create-version")
def create_version(
    subject: str,
    repository: str,
    package: str,
    version: str,
    meta: List[str] = typer.Option([], "--meta", "-m", help="Version attribute as KEY=VALUE"),
):
    """create a new version of a package."""
    metadata = parse_meta(meta)
    if metadata:
        metadata.setdefault("name", version)
    with handle_errors(), get_client() as client:
        client.create_version(subject, repository, package, version, metadata or None)
    console.print(f"[green]✓[/green] Created {package}@{version}")


@app.command()
def upload(
    subject: str,
    repository: str,
    package: str,
    version: str,
    file: Path,
    group_id: str = typer.Option("", "--group-id", help="Maven group id (dotted)"),
    artifact_id: str = typer.Option("", "--artifact-id", help="Maven artifact id"),
    maven: bool = typer.Option(False, "--maven", help="Use a maven-style path layout"),
    publish: bool = typer.Option(False, "--publish", help="Publish together with the upload"),
    override: bool = typer.Option(False, "--override", help="Replace an existing file"),
):
    """upload a file into a version."""
    progress_manager = ProgressManager(console)
    with handle_errors(), get_client() as client:
        with progress_manager.upload_progress(file.name, file.stat().st_size) as tracker:
            target = client.upload_file(
                subject,
                repository,
                package,
                version,
                file,
                group_id=group_id,
                artifact_id=artifact_id,
                maven=maven,
                publish=publish,
                override=override,
                on_progress=tracker.advance,
            )
    console.print(f"[green]✓[/green] Uploaded {file.name} as {target}")


@app.command()
def publish(subject: str, repository: str, package: str, version: str):
    """publish all uploaded files of a version."""
    with handle_errors(), get_client() as client:
        client.publish(subject, repository, package, version)
    console.print(f"[green]✓[/green] Published {package}@{version}")


@app.command()
def release(
    subject: str,
    repository: str,
    package: str,
    version: str,
    files: List[Path],
    group_id: str = typer.Option("", "--group-id", help="Maven group id (dotted)"),
    artifact_id: str = typer.Option("", "--artifact-id", help="Maven artifact id"),
    maven: bool = typer.Option(False, "--maven", help="Use a maven-style path layout"),
    meta: List[str] = typer.Option([], "--meta", "-m", help="Version attribute as KEY=VALUE"),
    no_publish: bool = typer.Option(False, "--no-publish", help="Upload without publishing"),
    override: bool = typer.Option(False, "--override", help="Replace existing files"),
):
    """create a version if needed, upload files and publish them."""
    metadata = parse_meta(meta)
    if metadata:
        metadata.setdefault("name", version)
    with handle_errors(), get_client() as client:
        service = ReleaseService(client, ProgressManager(console))
        report = service.release(
            subject,
            repository,
            package,
            version,
            files,
            group_id=group_id,
            artifact_id=artifact_id,
            maven=maven,
            metadata=metadata or None,
            publish=not no_publish,
            override=override,
        )

    if report.created_version:
        console.print(f"[green]✓[/green] Created version {version}")
    for target in report.uploaded:
        console.print(f"[green]✓[/green] Uploaded {target}")
    if report.published:
        console.print(f"[green]✓[/green] Published {package}@{version}")


@app.command()
def configure(
    user: str = typer.Option(..., prompt=True, help="Bintray user (subject)"),
    api_key: str = typer.Option(..., prompt=True, hide_input=True, help="Bintray API key"),
    api_url: str = typer.Option(DEFAULT_BASE_URL, help="API base URL"),
    config_file: Optional[Path] = typer.Option(None, help="Config file to write"),
):
    """store credentials in the config file."""
    try:
        save_settings(Settings(subject=user, api_key=api_key, base_url=api_url), config_file)
    except RuntimeError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] Saved credentials to {config_file or CONFIG_FILE}")


if __name__ == "__main__":
    app()
