# sitesnap/cli.py
import asyncio
from dataclasses import replace
from pathlib import Path
from typing import Optional

import typer

from .config import Settings, settings as default_settings
from .controller import CaptureController
from .errors import ValidationError
from .jobs import JobRegistry
from .models import EventStatus
from .utils import format_size

app = typer.Typer(add_completion=False)


async def capture(url: str, settings: Settings, controller: Optional[CaptureController] = None) -> bool:
    """Run one job in-process and print its progress. Returns True on success."""
    controller = controller or CaptureController(settings, naming=lambda job: "screenshot")
    registry = JobRegistry(controller, settings)
    job_id = registry.submit(url)

    async for event in registry.subscribe(job_id):
        if event.status == EventStatus.COMPLETED:
            for name, info in (("Desktop", event.result.desktop), ("Mobile", event.result.mobile)):
                typer.echo(f"{name} screenshot saved: {info.filename} ({info.resolution}, {format_size(info.size)})")
            typer.echo("Done! Both screenshots were saved.")
            return True
        if event.status == EventStatus.ERROR:
            typer.echo(event.message, err=True)
            return False
        typer.echo(f"[{event.progress:3d}%] {event.message}")
    return False


@app.command()
def main(url: Optional[str] = typer.Argument(None, help="Page to capture, e.g. https://www.google.com")):
    """Capture desktop and mobile full-page screenshots of URL into the current directory."""
    if not url:
        typer.echo("Error: please specify a URL.", err=True)
        typer.echo("Usage example: sitesnap https://www.google.com")
        raise typer.Exit(code=1)

    settings = replace(default_settings, artifacts_dir=Path.cwd())
    typer.echo(f"Capturing {url} ...")
    try:
        ok = asyncio.run(capture(url, settings))
    except ValidationError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)
    if not ok:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
