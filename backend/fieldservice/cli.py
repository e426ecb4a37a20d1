"""Field Service CLI tool (fieldservice)."""
import json
from pathlib import Path
from typing import Optional

import typer

from fieldservice.exceptions import PermissionConfigError

app = typer.Typer(name="fieldservice", help="Field Service permission tooling")


@app.command("export-permissions")
def export_permissions(
    output: Optional[Path] = typer.Argument(None, help="Write to this file instead of stdout"),
    source: Optional[Path] = typer.Option(None, "--from", help="Permission document to re-validate and export"),
):
    """Export the validated permission document for the frontend bundle."""
    from fieldservice.rbac.loader import load_permission_config

    try:
        config = load_permission_config(source)
    except PermissionConfigError as exc:
        typer.echo(f"Invalid permission configuration: {exc.message}", err=True)
        raise typer.Exit(code=1)

    document = json.dumps(config.to_document(), indent=2)
    if output is None:
        typer.echo(document)
        return

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(document + "\n", encoding="utf-8")
    typer.echo(f"Wrote {len(config.resources)} resources, {len(config.hierarchy)} roles to {output}")


@app.command("check-permissions")
def check_permissions(
    path: Path = typer.Argument(..., help="Permission document (JSON) to validate"),
):
    """Validate a permission document without starting the API."""
    from fieldservice.rbac.evaluator import PermissionEvaluator
    from fieldservice.rbac.loader import load_permission_file

    try:
        config = load_permission_file(path)
    except PermissionConfigError as exc:
        typer.echo(f"Invalid permission configuration: {exc.message}", err=True)
        raise typer.Exit(code=1)

    evaluator = PermissionEvaluator(config)
    typer.echo(f"{path}: version {config.version}, roles {' -> '.join(config.hierarchy.names)}")
    for resource in config.resources:
        allowed = {
            role.name: ",".join(op.value for op in evaluator.get_allowed_operations(role.name, resource)) or "-"
            for role in config.hierarchy
        }
        summary = "  ".join(f"{name}={ops}" for name, ops in allowed.items())
        typer.echo(f"  {resource.value}: {summary}")


if __name__ == "__main__":
    app()
