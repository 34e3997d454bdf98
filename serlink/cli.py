"""Typer CLI entrypoint."""

from __future__ import annotations

import logging
import queue
from dataclasses import replace
from pathlib import Path

import typer

from serlink.core.errors import SerlinkError
from serlink.core.model import (
    DEFAULT_BAUD_RATE,
    DEFAULT_CHARSET,
    DEFAULT_DATA_BITS,
    DEFAULT_END_CODE,
    DEFAULT_MAX_FRAME_SIZE,
    DEFAULT_PARITY,
    DEFAULT_START_CODE,
    DEFAULT_STOP_BITS,
    ConnectionConfig,
)
from serlink.core.service import SerialLink
from serlink.core.store import ConnectionStore

app = typer.Typer(help="Framed serial port connections with charset decoding")


@app.callback()
def main(
    ctx: typer.Context,
    config: Path | None = typer.Option(None, "--config", help="Connection file (default: XDG config dir)"),
    log_level: str = typer.Option("WARNING", "--log-level", help="Python logging level"),
) -> None:
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = {"config": config}


def _build_link(ctx: typer.Context, only: str | None = None, *, connect: bool = True) -> SerialLink:
    link = SerialLink(
        store=ConnectionStore(ctx.obj["config"]),
        on_status=lambda name, status: typer.echo(f"{name}: {status.value}", err=True),
    )
    for warning in link.restore(only={only} if only else None, connect=connect):
        typer.echo(f"Warning: {warning}", err=True)
    return link


@app.command("ports")
def list_ports(ctx: typer.Context) -> None:
    """Rescan and list serial ports present on this machine."""
    link = SerialLink(store=ConnectionStore(ctx.obj["config"]))
    try:
        ports = link.rescan_ports()
        if not ports:
            typer.echo("No serial ports found")
            return
        for port in ports:
            typer.echo(port)
    except SerlinkError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None
    finally:
        link.shutdown()


@app.command("list")
def list_connections(ctx: typer.Context) -> None:
    """List configured connections."""
    try:
        stored = ConnectionStore(ctx.obj["config"]).load()
        if not stored:
            typer.echo("No connections configured")
            return
        for item in stored:
            cfg = item.config
            typer.echo(
                f"{item.name}: {cfg.port} {cfg.baud_rate} {cfg.data_bits}/{cfg.parity}/{cfg.stop_bits} "
                f"start={cfg.start_code} end={cfg.end_code} charset={cfg.charset}"
            )
    except SerlinkError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("add")
def add_connection(
    ctx: typer.Context,
    name: str,
    port: str = typer.Option(..., "--port", help="Serial port, e.g. /dev/ttyUSB0 or COM3"),
    baud_rate: int = typer.Option(DEFAULT_BAUD_RATE, "--baud"),
    data_bits: int = typer.Option(DEFAULT_DATA_BITS, "--data-bits"),
    stop_bits: int = typer.Option(DEFAULT_STOP_BITS, "--stop-bits"),
    parity: int = typer.Option(DEFAULT_PARITY, "--parity", help="0 none, 1 odd, 2 even, 3 mark, 4 space"),
    start_code: str = typer.Option(DEFAULT_START_CODE, "--start", help="Start code: 0x.., decimal or a character"),
    end_code: str = typer.Option(DEFAULT_END_CODE, "--end", help="End code: 0x.., decimal or a character"),
    charset: str = typer.Option(DEFAULT_CHARSET, "--charset", help="Codec name, or None for hex"),
    flush_on_idle: bool = typer.Option(False, "--flush-on-idle", help="End a frame when the port goes idle"),
    max_frame_size: int = typer.Option(DEFAULT_MAX_FRAME_SIZE, "--max-frame-size"),
) -> None:
    """Add a connection and try to open it."""
    link = None
    try:
        config = ConnectionConfig(
            port=port,
            baud_rate=baud_rate,
            data_bits=data_bits,
            stop_bits=stop_bits,
            parity=parity,
            start_code=start_code,
            end_code=end_code,
            charset=charset,
            flush_on_idle=flush_on_idle,
            max_frame_size=max_frame_size,
        )
        link = _build_link(ctx, connect=False)
        conn = link.add_connection(name, config)
        typer.echo(f"Added {name} ({conn.status.value})")
    except SerlinkError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None
    finally:
        if link is not None:
            link.shutdown()


@app.command("edit")
def edit_connection(
    ctx: typer.Context,
    name: str,
    new_name: str | None = typer.Option(None, "--name", help="Rename the connection"),
    port: str | None = typer.Option(None, "--port"),
    baud_rate: int | None = typer.Option(None, "--baud"),
    data_bits: int | None = typer.Option(None, "--data-bits"),
    stop_bits: int | None = typer.Option(None, "--stop-bits"),
    parity: int | None = typer.Option(None, "--parity"),
    start_code: str | None = typer.Option(None, "--start"),
    end_code: str | None = typer.Option(None, "--end"),
    charset: str | None = typer.Option(None, "--charset"),
    flush_on_idle: bool | None = typer.Option(None, "--flush-on-idle/--no-flush-on-idle"),
    max_frame_size: int | None = typer.Option(None, "--max-frame-size"),
) -> None:
    """Change a connection's settings; it is reopened with the new ones."""
    link = None
    try:
        link = _build_link(ctx, connect=False)
        current = link.get(name).config
        changes = {
            "port": port,
            "baud_rate": baud_rate,
            "data_bits": data_bits,
            "stop_bits": stop_bits,
            "parity": parity,
            "start_code": start_code,
            "end_code": end_code,
            "charset": charset,
            "flush_on_idle": flush_on_idle,
            "max_frame_size": max_frame_size,
        }
        config = replace(current, **{key: value for key, value in changes.items() if value is not None})
        conn = link.edit_connection(name, config, new_name=new_name)
        typer.echo(f"Updated {conn.name} ({conn.status.value})")
    except SerlinkError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None
    finally:
        if link is not None:
            link.shutdown()


@app.command("remove")
def remove_connection(ctx: typer.Context, name: str) -> None:
    """Remove a connection."""
    link = None
    try:
        link = _build_link(ctx, connect=False)
        link.remove_connection(name)
        typer.echo(f"Removed {name}")
    except SerlinkError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None
    finally:
        if link is not None:
            link.shutdown()


@app.command("send")
def send_message(
    ctx: typer.Context,
    name: str,
    message: str,
    start_code: str | None = typer.Option(None, "--start", help="Override the start code for this send"),
    end_code: str | None = typer.Option(None, "--end", help="Override the end code for this send"),
) -> None:
    """Send MESSAGE framed with the connection's start and end codes."""
    link = None
    try:
        link = _build_link(ctx, only=name)
        result = link.send(name, message, start_code=start_code, end_code=end_code)
        typer.echo(f"Sent to {result.connection}: {result.frame_hex}")
    except SerlinkError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None
    finally:
        if link is not None:
            link.shutdown()


@app.command("monitor")
def monitor(
    ctx: typer.Context,
    name: str,
    count: int | None = typer.Option(None, "--count", help="Exit after COUNT messages"),
) -> None:
    """Print each message received on a connection until interrupted."""
    link = None
    received: queue.Queue[str] = queue.Queue()
    try:
        link = _build_link(ctx, only=name)
        link.get(name).subscribe(received.put)
        seen = 0
        while count is None or seen < count:
            typer.echo(received.get())
            seen += 1
    except KeyboardInterrupt:
        pass
    except SerlinkError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None
    finally:
        if link is not None:
            link.shutdown()


def run() -> None:
    app()


if __name__ == "__main__":
    run()
