"""
beaconlock command line.

Commands:
  - chain    : Show (and validate) the chain info of a mirror.
  - rand     : Fetch and verify a beacon (latest if no round given).
  - round    : Resolve "1234", "30s", "2h" or an RFC 3339 time to a round.
  - encrypt  : Timelock a file to a future round (age format).
  - decrypt  : Decrypt a timelocked file once its round is out.
  - inspect  : Show the target round and chain of a timelocked file.

Environment: BEACONLOCK_URL selects the mirror; see `beaconlock.config`.

Example:
  beaconlock rand --url https://api.drand.sh/52db9ba70e0cc0f6eaf7803dd07447a1f5477735fd3f661792ba94600c84e971
  beaconlock encrypt --round 30s --armor -o secret.age notes.txt
  beaconlock decrypt secret.age
"""

from __future__ import annotations

import datetime as _dt
import enum
import json
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Sequence

import typer

from beaconlock import envelope
from beaconlock import logging as blog
from beaconlock.chain import round_time
from beaconlock.client import HttpChainClient
from beaconlock.config import BeaconLockConfig
from beaconlock.errors import BeaconLockError, RoundNotReached, SchemeMismatch
from beaconlock.version import __version__

__all__ = ["app", "main"]


class OutputFormat(str, enum.Enum):
    short = "short"
    long = "long"
    json = "json"


app = typer.Typer(
    name="beaconlock",
    help="Verify drand beacons and timelock files to future rounds.",
    no_args_is_help=True,
    add_completion=False,
)


def _opt_url() -> Optional[str]:
    return typer.Option(None, "--url", "-u", help="Mirror base URL (default: BEACONLOCK_URL or api.drand.sh).")  # type: ignore[return-value]


def _opt_format() -> OutputFormat:
    return typer.Option(OutputFormat.short, "--format", "-f", case_sensitive=False, help="short | long | json")  # type: ignore[return-value]


def _load_config(url: Optional[str]) -> BeaconLockConfig:
    cfg = BeaconLockConfig.from_env()
    if url:
        cfg.client.url = url
        cfg.validate()
    return cfg


def _make_client(cfg: BeaconLockConfig) -> HttpChainClient:
    return HttpChainClient(
        cfg.client.url,
        options=cfg.client.options(),
        timeout=cfg.client.timeout_s,
        encoding=cfg.client.encoding,
    )


@contextmanager
def _cli_errors() -> Iterator[None]:
    try:
        yield
    except RoundNotReached as e:
        at = _dt.datetime.fromtimestamp(e.available_at, tz=_dt.timezone.utc)
        typer.echo(f"too early to decrypt: round {e.round} is published at {at.isoformat()}", err=True)
        raise typer.Exit(code=2)
    except BeaconLockError as e:
        typer.echo(f"error: {e}", err=True)
        raise typer.Exit(code=2 if e.retriable else 1)


def _read_input(path: Optional[str]) -> bytes:
    if path is None or path == "-":
        return typer.get_binary_stream("stdin").read()
    return Path(path).read_bytes()


def _write_output(data: bytes, path: Optional[str]) -> None:
    if path is None or path == "-":
        out = typer.get_binary_stream("stdout")
        out.write(data)
        out.flush()
        return
    Path(path).write_bytes(data)


@app.callback()
def _root(
    ctx: typer.Context,
    log_level: Optional[str] = typer.Option(None, "--log-level", help="DEBUG, INFO, WARNING, ..."),
    log_json: Optional[bool] = typer.Option(None, "--log-json/--log-text", help="Log format."),
) -> None:
    cfg = BeaconLockConfig.from_env()
    blog.configure(
        json=log_json if log_json is not None else cfg.logging.json,
        level=(log_level or cfg.logging.level),
        file_path=cfg.logging.file,
    )
    ctx.with_resource(blog.trace_scope())
    blog.bind(op=ctx.invoked_subcommand)


@app.command("version")
def cmd_version() -> None:
    """Print the package version."""
    typer.echo(__version__)


@app.command("chain")
def cmd_chain(url: Optional[str] = _opt_url(), fmt: OutputFormat = _opt_format()) -> None:
    """Fetch chain info; the chain hash is recomputed before anything is printed."""
    with _cli_errors():
        cfg = _load_config(url)
        with _make_client(cfg) as c:
            info = c.chain_info()
    if fmt is OutputFormat.short:
        typer.echo(info.hash_hex)
    else:
        typer.echo(info.to_json(indent=2))


@app.command("rand")
def cmd_rand(
    round: Optional[int] = typer.Argument(None, min=1, help="Round number (omit for latest)."),
    url: Optional[str] = _opt_url(),
    verify: bool = typer.Option(True, "--verify/--no-verify", help="Verify the beacon signature."),
    fmt: OutputFormat = _opt_format(),
) -> None:
    """Fetch a beacon; by default it is verified against the chain info."""
    with _cli_errors():
        cfg = _load_config(url)
        cfg.client.verify_beacons = verify
        with _make_client(cfg) as c:
            beacon = c.latest() if round is None else c.get(round)
    if fmt is OutputFormat.short:
        typer.echo(beacon.randomness.hex())
    elif fmt is OutputFormat.long:
        typer.echo(f"round: {beacon.round}")
        typer.echo(f"randomness: {beacon.randomness.hex()}")
        typer.echo(f"signature: {beacon.signature.hex()}")
        if beacon.previous_signature is not None:
            typer.echo(f"previous_signature: {beacon.previous_signature.hex()}")
    else:
        typer.echo(beacon.to_json(indent=2))


@app.command("round")
def cmd_round(
    spec: str = typer.Argument("0s", help="Round number, duration from now (30s, 2h) or RFC 3339 time."),
    url: Optional[str] = _opt_url(),
    fmt: OutputFormat = _opt_format(),
) -> None:
    """Resolve a round and its publication time."""
    with _cli_errors():
        cfg = _load_config(url)
        with _make_client(cfg) as c:
            rt = round_time(c.chain_info(), spec)
    if fmt is OutputFormat.short:
        typer.echo(str(rt.round))
    else:
        typer.echo(json.dumps(rt.to_dict(), indent=2))


@app.command("encrypt")
def cmd_encrypt(
    input: Optional[str] = typer.Argument(None, help="File to encrypt ('-' or omitted: stdin)."),
    round_spec: str = typer.Option(..., "--round", "-r", help="Round number, duration (30s, 1d) or RFC 3339 time."),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Output file ('-' or omitted: stdout)."),
    armor: Optional[bool] = typer.Option(None, "--armor/--binary", help="ASCII-armor the output."),
    url: Optional[str] = _opt_url(),
) -> None:
    """Timelock INPUT to a round of the selected chain."""
    with _cli_errors():
        cfg = _load_config(url)
        with _make_client(cfg) as c:
            info = c.chain_info()
        if not info.scheme.supports_timelock:
            raise SchemeMismatch(info.scheme_id, "remote must use unchained signatures for timelock encryption")
        rt = round_time(info, round_spec)
        blog.bind(chain=info.hash, round=rt.round)
        sealed = envelope.seal(
            info,
            rt.round,
            _read_input(input),
            armor=cfg.armor if armor is None else armor,
        )
    _write_output(sealed, output)
    typer.echo(f"encrypted to round {rt.round} ({rt.absolute.isoformat()})", err=True)


@app.command("decrypt")
def cmd_decrypt(
    input: Optional[str] = typer.Argument(None, help="Timelocked file ('-' or omitted: stdin)."),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Output file ('-' or omitted: stdout)."),
    url: Optional[str] = _opt_url(),
) -> None:
    """Decrypt INPUT once its round has been published."""
    with _cli_errors():
        data = _read_input(input)
        header = envelope.inspect(data)
        blog.bind(chain=header.chain_hash, round=header.round)
        cfg = _load_config(url)
        with _make_client(cfg) as c:
            info = c.chain_info()
            if header.round > info.current_round():
                raise RoundNotReached(header.round, info.time_of_round(header.round))
            beacon = c.get(header.round)
        plaintext = envelope.open(info, data, beacon.signature)
    _write_output(plaintext, output)


@app.command("inspect")
def cmd_inspect(
    input: Optional[str] = typer.Argument(None, help="Timelocked file ('-' or omitted: stdin)."),
    fmt: OutputFormat = _opt_format(),
) -> None:
    """Show the round and chain a file is locked to, without any network access."""
    with _cli_errors():
        header = envelope.inspect(_read_input(input))
    if fmt is OutputFormat.json:
        typer.echo(json.dumps(header.to_dict(), indent=2))
    else:
        typer.echo(f"round: {header.round}")
        typer.echo(f"chain: {header.chain_hash.hex()}")


def main(argv: Optional[Sequence[str]] = None) -> None:  # pragma: no cover - thin wrapper
    """Entry-point for the `beaconlock` console script and `python -m beaconlock`."""
    try:
        app(args=list(argv) if argv is not None else None, prog_name="beaconlock")
    except KeyboardInterrupt:
        typer.echo("", err=True)
        sys.exit(130)


if __name__ == "__main__":  # pragma: no cover
    main()
