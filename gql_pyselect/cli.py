"""Command-line interface for gql-pyselect."""

import logging
import shutil
import tarfile
import tempfile
import zipfile
from pathlib import Path

import click

from .core.errors import GqlSelectError
from .core.executor import GraphQLExecutor
from .core.loader import LoadedSchema, LoaderOptions, SchemaLoader
from .core.resolver import AccessorKind, dispatch_for
from .core.serializer import SerializeOptions


def extract_archive(archive_path: Path) -> str:
    """Extract archive to temp directory. Returns path to extracted content."""
    temp_dir = tempfile.mkdtemp()
    if archive_path.suffix == ".zip":
        with zipfile.ZipFile(archive_path, "r") as zip_ref:
            zip_ref.extractall(temp_dir)
    elif archive_path.name.endswith((".tar.gz", ".tgz")):
        with tarfile.open(archive_path, "r:gz") as tar_ref:
            tar_ref.extractall(temp_dir, filter="data")
    else:
        shutil.rmtree(temp_dir)
        raise ValueError(f"Unsupported archive format: {archive_path.suffix}")
    return temp_dir


def load_from_path(schema: str, excluded_types: tuple[str, ...] = ()) -> LoadedSchema:
    """Load a schema file, directory or archive (.zip, .tar.gz, .tgz)."""
    schema_path = Path(schema).resolve()
    options = LoaderOptions(excluded_types=list(excluded_types))
    temp_dir = None
    try:
        actual_schema_path = schema_path
        if schema_path.is_file() and schema_path.name.lower().endswith((".zip", ".tar.gz", ".tgz")):
            click.echo(f"Extracting archive {schema_path.name}...", err=True)
            temp_dir = extract_archive(schema_path)
            actual_schema_path = Path(temp_dir)
        return SchemaLoader(str(actual_schema_path), options).load()
    finally:
        # Clean up temp directory
        if temp_dir:
            shutil.rmtree(temp_dir)


schema_option = click.option(
    "--schema",
    "-s",
    required=True,
    type=click.Path(exists=True),
    help="Path to GraphQL schema file, directory, or archive (.zip, .tar.gz, .tgz).",
)


@click.group()
@click.version_option(package_name="gql-pyselect")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def main(verbose: bool):
    """Chainable GraphQL selections for Python.

    Inspect how a schema is classified and render selections to request text.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@main.command()
@schema_option
@click.option("--type", "type_names", multiple=True, help="Only show these types.")
@click.option("--exclude", multiple=True, help="Type names to leave out of the schema.")
def inspect(schema: str, type_names: tuple[str, ...], exclude: tuple[str, ...]):
    """Show selectable types with their categories and fields.

    Examples:

        gql-pyselect inspect --schema ./schema.graphql

        gql-pyselect inspect -s ./schema --type Post --type Author
    """
    loaded = load_from_path(schema, exclude)
    names = type_names or loaded.registry.names()
    for name in names:
        try:
            schema_type = loaded.registry.require(name)
        except GqlSelectError as e:
            raise click.ClickException(str(e))

        supers = ", ".join(s.name for s in schema_type.interfaces)
        header = f"{schema_type.name} [{schema_type.category.value}]"
        click.echo(f"{header} : {supers}" if supers else header)

        dispatch = dispatch_for(schema_type)
        for field_name, accessor in dispatch.accessors.items():
            schema_field = accessor.field
            line = f"  {field_name}: {schema_field.category.value} ({accessor.kind.value})"
            if schema_field.arg_graphql_types:
                args = ", ".join(f"{k}: {v}" for k, v in schema_field.arg_graphql_types.items())
                line += f" ({args})"
            target = schema_field.connection_type_name or schema_field.target_type_name
            if target:
                line += f" -> {target}"
            click.echo(line)


@main.command()
@schema_option
@click.option("--type", "type_name", default="Query", show_default=True, help="Root type of the selection.")
@click.option("--field", "-f", "fields", multiple=True, required=True, help="Scalar field to select (repeatable).")
@click.option("--operation-name", "-n", default=None, help="Operation name for the request.")
@click.option("--indent", default="  ", show_default=True, help="Indentation string.")
def render(schema: str, type_name: str, fields: tuple[str, ...], operation_name: str | None, indent: str):
    """Render a selection of scalar fields to request text.

    Examples:

        gql-pyselect render -s ./schema.graphql --type Query -f version

        gql-pyselect render -s ./schema.graphql --type Post -f id -f title
    """
    loaded = load_from_path(schema)
    try:
        selection = loaded.selection(type_name)
        dispatch = dispatch_for(selection.schema_type)
        for field_name in fields:
            if dispatch.get(field_name).kind != AccessorKind.SCALAR:
                raise click.UsageError(f'Field "{field_name}" needs arguments or a child selection')
            selection = selection[field_name]
    except GqlSelectError as e:
        raise click.ClickException(str(e))

    options = SerializeOptions(indent=indent)
    click.echo(GraphQLExecutor().build_request(selection, operation_name=operation_name, options=options))


if __name__ == "__main__":
    main()
