"""Typer CLI entrypoint for ftl-mapper."""

from __future__ import annotations

import json
from dataclasses import asdict
from pathlib import Path
from typing import Annotated, Any, Literal, cast

import typer

from apps.cli.format_human import (
    render_change_summary,
    render_fields,
    render_mapping_line,
    render_preview_issues,
)
from apps.cli.io import (
    build_export_path,
    has_template_suffix,
    read_text_input,
    write_json_atomic,
    write_template_atomic,
)
from core.config.settings_loader import EditorSettings, default_settings, load_settings
from core.mapping.plugins import list_transformations
from core.orchestrator.session import EditorSession
from core.orchestrator.session_store import SessionStore
from core.schema.field_extractor import extract_fields, load_schema_text
from core.utils.errors import (
    InputLimitError,
    MappingEditError,
    MappingNotFoundError,
    SchemaParseError,
)

app = typer.Typer(help="FreeMarker JSON mapping editor CLI", rich_markup_mode=None)
ReportMode = Literal["human", "json"]

EXIT_OK = 0
EXIT_INTERNAL = 1
EXIT_INVALID_INPUT = 2
EXIT_MAPPING_ERROR = 3

SessionOption = Annotated[
    Path, typer.Option("--session", help="Session JSON file holding mappings and baseline.")
]


@app.callback()
def cli_callback(
    ctx: typer.Context,
    settings: Annotated[
        Path | None,
        typer.Option("--settings", help="Editor settings YAML (defaults to bundled settings)."),
    ] = None,
) -> None:
    """Load settings once for all subcommands."""

    try:
        ctx.obj = load_settings(settings) if settings is not None else default_settings()
    except ValueError as exc:
        typer.echo(f"ERROR: {exc}")
        raise typer.Exit(code=EXIT_INVALID_INPUT) from exc


@app.command("fields")
def fields_command(
    ctx: typer.Context,
    schema: Annotated[Path, typer.Option(..., exists=True, dir_okay=False, file_okay=True)],
    leaves_only: Annotated[bool, typer.Option("--leaves-only")] = False,
    as_json: Annotated[bool, typer.Option("--json", help="Print descriptors as JSON.")] = False,
) -> None:
    """List the fields of a schema document."""

    settings = _settings(ctx)
    try:
        document = load_schema_text(read_text_input(schema))
    except SchemaParseError as exc:
        typer.echo(f"ERROR: {exc}")
        raise typer.Exit(code=EXIT_INVALID_INPUT) from exc

    fields = extract_fields(
        document, type_aliases=settings.type_aliases, max_depth=settings.max_schema_depth
    )
    if as_json:
        selected = [item for item in fields if not (leaves_only and item.is_object)]
        typer.echo(json.dumps([asdict(item) for item in selected], indent=2))
        return
    typer.echo(render_fields(fields, leaves_only=leaves_only))


@app.command("parse")
def parse_command(
    ctx: typer.Context,
    template: Annotated[Path, typer.Option(..., exists=True, dir_okay=False, file_okay=True)],
    session: SessionOption,
) -> None:
    """Parse a template into the session, resetting its baseline."""

    settings = _settings(ctx)
    if not has_template_suffix(template, settings):
        allowed = ", ".join(settings.template_suffixes)
        typer.echo(f"ERROR: --template must have one of these suffixes: {allowed}.")
        raise typer.Exit(code=EXIT_INVALID_INPUT)

    store = SessionStore(session)
    editor = _load_session(store, settings)
    try:
        result = editor.load_template(read_text_input(template))
    except InputLimitError as exc:
        typer.echo(f"ERROR: {exc}")
        raise typer.Exit(code=EXIT_INVALID_INPUT) from exc

    store.save(editor)
    for record in result.mappings:
        typer.echo(render_mapping_line(record))
    for skipped in result.skipped:
        typer.echo(f"WARNING(parse): line {skipped.line_no} skipped ({skipped.reason})")
    typer.echo(
        f"INFO: parsed {len(result.mappings)} mappings, skipped {len(result.skipped)} lines"
    )


@app.command("automap")
def automap_command(
    ctx: typer.Context,
    input_schema: Annotated[
        Path, typer.Option("--input", exists=True, dir_okay=False, file_okay=True)
    ],
    output_schema: Annotated[
        Path, typer.Option("--output", exists=True, dir_okay=False, file_okay=True)
    ],
    session: SessionOption,
) -> None:
    """Load both schemas and replace the mappings with name-based suggestions."""

    settings = _settings(ctx)
    store = SessionStore(session)
    editor = _load_session(store, settings)
    try:
        editor.load_input_schema(read_text_input(input_schema))
        editor.load_output_schema(read_text_input(output_schema))
    except SchemaParseError as exc:
        typer.echo(f"ERROR: {exc}")
        raise typer.Exit(code=EXIT_INVALID_INPUT) from exc

    records = editor.auto_map()
    store.save(editor)
    for record in records:
        typer.echo(render_mapping_line(record))
    leaves = sum(1 for item in editor.output_fields if not item.is_object)
    typer.echo(f"INFO: auto-mapped {len(records)} of {leaves} output fields")


@app.command("add")
def add_command(
    ctx: typer.Context,
    session: SessionOption,
    target: Annotated[str, typer.Option(...)],
    source: Annotated[str, typer.Option()] = "",
    transformation: Annotated[str, typer.Option()] = "direct",
    condition: Annotated[str, typer.Option()] = "",
    sources: Annotated[
        list[str] | None,
        typer.Option("--sources", help="Field path for concatenate; repeat in order."),
    ] = None,
) -> None:
    """Add a new mapping to the session."""

    fields: dict[str, Any] = {
        "target": target,
        "source": source,
        "transformation": _normalize_transformation(transformation),
        "condition": condition,
    }
    if sources:
        fields["sources"] = list(sources)

    store = SessionStore(session)
    editor = _load_session(store, _settings(ctx))
    try:
        record = editor.model.create(**fields)
    except MappingEditError as exc:
        typer.echo(f"ERROR: {exc}")
        raise typer.Exit(code=EXIT_MAPPING_ERROR) from exc

    store.save(editor)
    typer.echo(render_mapping_line(record))


@app.command("update")
def update_command(
    ctx: typer.Context,
    session: SessionOption,
    mapping_id: Annotated[str, typer.Option("--id")],
    target: Annotated[str | None, typer.Option()] = None,
    source: Annotated[str | None, typer.Option()] = None,
    transformation: Annotated[str | None, typer.Option()] = None,
    condition: Annotated[str | None, typer.Option()] = None,
    sources: Annotated[list[str] | None, typer.Option("--sources")] = None,
) -> None:
    """Edit fields of an existing mapping."""

    changes: dict[str, Any] = {}
    if target is not None:
        changes["target"] = target
    if source is not None:
        changes["source"] = source
    if transformation is not None:
        changes["transformation"] = _normalize_transformation(transformation)
    if condition is not None:
        changes["condition"] = condition
    if sources:
        changes["sources"] = list(sources)
    if not changes:
        typer.echo("ERROR: nothing to update.")
        raise typer.Exit(code=EXIT_INTERNAL)

    store = SessionStore(session)
    editor = _load_session(store, _settings(ctx))
    try:
        record = editor.model.update(mapping_id, **changes)
    except (MappingNotFoundError, MappingEditError) as exc:
        typer.echo(f"ERROR: {exc}")
        raise typer.Exit(code=EXIT_MAPPING_ERROR) from exc

    store.save(editor)
    typer.echo(render_mapping_line(record))


@app.command("delete")
def delete_command(
    ctx: typer.Context,
    session: SessionOption,
    mapping_id: Annotated[str, typer.Option("--id")],
) -> None:
    """Delete a mapping by id."""

    store = SessionStore(session)
    editor = _load_session(store, _settings(ctx))
    try:
        removed = editor.model.delete(mapping_id)
    except MappingNotFoundError as exc:
        typer.echo(f"ERROR: {exc}")
        raise typer.Exit(code=EXIT_MAPPING_ERROR) from exc

    store.save(editor)
    typer.echo(f"INFO: deleted {removed.id} ({removed.target})")


@app.command("generate")
def generate_command(
    ctx: typer.Context,
    session: SessionOption,
    out_dir: Annotated[Path, typer.Option()] = Path("."),
    stdout: Annotated[bool, typer.Option("--stdout", help="Print instead of writing.")] = False,
) -> None:
    """Generate template text from the session mappings."""

    settings = _settings(ctx)
    editor = _load_session(SessionStore(session), settings)
    text = editor.generate()
    if stdout:
        typer.echo(text)
        return

    path = build_export_path(out_dir, settings)
    try:
        write_template_atomic(path, text)
    except OSError as exc:
        typer.echo(f"ERROR: write template failed: {exc}")
        raise typer.Exit(code=EXIT_INTERNAL) from exc
    typer.echo(f"INFO: wrote {path}")


@app.command("diff")
def diff_command(
    ctx: typer.Context,
    session: SessionOption,
    report: Annotated[str, typer.Option("--report")] = "human",
    out: Annotated[Path | None, typer.Option("--out", help="Also write JSON report.")] = None,
) -> None:
    """Report added, modified and deleted mappings against the baseline."""

    normalized = report.lower().strip()
    if normalized not in {"human", "json"}:
        typer.echo("ERROR: --report must be one of: human, json.")
        raise typer.Exit(code=EXIT_INTERNAL)
    report_mode = cast(ReportMode, normalized)

    editor = _load_session(SessionStore(session), _settings(ctx))
    changes = editor.changes()
    payload = changes.model_dump(mode="json")
    payload["summary"] = changes.summary().model_dump(mode="json")

    if report_mode == "json":
        typer.echo(json.dumps(payload, indent=2, sort_keys=True))
    else:
        typer.echo(render_change_summary(changes))

    if out is not None:
        write_json_atomic(out, payload)


@app.command("preview")
def preview_command(
    ctx: typer.Context,
    session: SessionOption,
    sample: Annotated[Path, typer.Option(..., exists=True, dir_okay=False, file_okay=True)],
) -> None:
    """Evaluate the mappings against a sample input document."""

    editor = _load_session(SessionStore(session), _settings(ctx))
    try:
        sample_document = load_schema_text(read_text_input(sample))
    except SchemaParseError as exc:
        typer.echo(f"ERROR: {exc}")
        raise typer.Exit(code=EXIT_INVALID_INPUT) from exc

    result = editor.preview(sample_document)
    typer.echo(json.dumps(result.output, indent=2, ensure_ascii=False))
    typer.echo(render_preview_issues(result))


def _settings(ctx: typer.Context) -> EditorSettings:
    if isinstance(ctx.obj, EditorSettings):
        return ctx.obj
    return default_settings()


def _load_session(store: SessionStore, settings: EditorSettings) -> EditorSession:
    try:
        return store.load(settings)
    except ValueError as exc:
        typer.echo(f"ERROR: {exc}")
        raise typer.Exit(code=EXIT_INVALID_INPUT) from exc


def _normalize_transformation(value: str) -> str:
    normalized = value.lower().strip()
    supported = list_transformations()
    if normalized not in supported:
        typer.echo(f"ERROR: --transformation must be one of: {', '.join(supported)}.")
        raise typer.Exit(code=EXIT_INTERNAL)
    return normalized


def main() -> None:
    """Console script entrypoint."""

    app()


if __name__ == "__main__":
    main()
