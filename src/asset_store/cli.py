import base64
import json
import logging
import shutil
from dataclasses import asdict
from pathlib import Path
from typing import Annotated

import typer

from asset_store.errors import AssetNotFoundError, BlobNotFoundError
from asset_store.migrate import migrate_tree
from asset_store.mime import UNKNOWN_ASSET_TYPE, asset_type_to_mime, mime_to_asset_type
from asset_store.models import FullAssetData
from asset_store.service import AssetService
from asset_store.settings import AppSettings
from asset_store.storage.blob_store import BlobStore
from asset_store.storage.db import AssetMetadataStore

app = typer.Typer()


@app.callback()
def main() -> None:
    """Content-addressed asset blob store CLI."""
    settings = AppSettings()
    logging.basicConfig(
        level=settings.asset_log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _blob_store(settings: AppSettings) -> BlobStore:
    return BlobStore(
        settings.asset_data_dir,
        settings.asset_spool_dir,
        fsync_writes=settings.asset_fsync_writes,
    )


@app.command("store")
def store(path: Annotated[Path, typer.Argument(exists=True, dir_okay=False)]) -> None:
    blobs = _blob_store(AppSettings())
    typer.echo(blobs.store_bytes(path.read_bytes()))


@app.command("load")
def load(
    address: Annotated[str, typer.Argument()],
    output: Annotated[Path | None, typer.Option("--output")] = None,
) -> None:
    blobs = _blob_store(AppSettings())
    try:
        reader = blobs.load(address)
    except (BlobNotFoundError, ValueError) as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc

    with reader:
        if output is None:
            stdout = typer.get_binary_stream("stdout")
            shutil.copyfileobj(reader, stdout)
            stdout.flush()
        else:
            output.parent.mkdir(parents=True, exist_ok=True)
            with output.open("wb") as handle:
                shutil.copyfileobj(reader, handle)


@app.command("exists")
def exists(address: Annotated[str, typer.Argument()]) -> None:
    try:
        found = _blob_store(AppSettings()).exists(address)
    except ValueError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc
    typer.echo("true" if found else "false")
    if not found:
        raise typer.Exit(code=1)


@app.command("put-asset")
def put_asset(
    path: Annotated[Path, typer.Argument(exists=True, dir_okay=False)],
    asset_id: Annotated[str, typer.Option("--id")],
    name: Annotated[str, typer.Option("--name")] = "",
    description: Annotated[str, typer.Option("--description")] = "",
    asset_type: Annotated[int, typer.Option("--type")] = 0,
    flags: Annotated[str, typer.Option("--flags")] = "",
    mime: Annotated[str | None, typer.Option("--mime")] = None,
) -> None:
    if mime is not None:
        asset_type = mime_to_asset_type(mime)
        if asset_type == UNKNOWN_ASSET_TYPE:
            raise typer.BadParameter(f"unknown asset MIME type: {mime}")
    settings = AppSettings()
    with AssetMetadataStore(settings.asset_db_path) as metadata:
        service = AssetService(metadata, _blob_store(settings))
        asset = service.create_asset(
            FullAssetData(
                id=asset_id,
                name=name,
                description=description,
                type=asset_type,
                flags=flags,
                data=base64.b64encode(path.read_bytes()).decode("ascii"),
            )
        )
    typer.echo(f"id={asset.id} hash={asset.hash}")


@app.command("get-asset")
def get_asset(asset_id: Annotated[str, typer.Argument()]) -> None:
    settings = AppSettings()
    with AssetMetadataStore(settings.asset_db_path) as metadata:
        service = AssetService(metadata, _blob_store(settings))
        try:
            asset = service.get_asset_metadata(asset_id)
        except AssetNotFoundError as exc:
            typer.echo(str(exc), err=True)
            raise typer.Exit(code=1) from exc
        payload = asdict(asset)
        payload["content_type"] = asset_type_to_mime(asset.type)
        payload["stored"] = service.blobs.exists(asset.hash)
    typer.echo(json.dumps(payload, indent=2, sort_keys=True))


@app.command("migrate")
def migrate(
    root: Annotated[Path, typer.Argument(exists=True, file_okay=False)],
    remove_legacy: Annotated[bool, typer.Option("--remove-legacy")] = False,
    report_path: Annotated[Path | None, typer.Option("--report")] = None,
) -> None:
    report = migrate_tree(root, remove_legacy=remove_legacy)
    if report_path is not None:
        report_path.write_text(report.to_json(), encoding="utf-8")
    typer.echo(
        f"scanned={report.scanned} converted={report.converted} "
        f"skipped={report.skipped} removed={report.removed} failed={report.failed}"
    )
    if report.failures:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
