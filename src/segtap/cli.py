"""Command line interface for the segtap package."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer

from .demo import run_demo
from .meter.config import load_config
from .meter.device import MeterDevice
from .meter.frames import FrameFormat, FrameParser, iterate_binary_stream
from .meter.runner import MeterHost, SerialSettings
from .plotting import plot_graph
from .reporting import ReadingLogger

logger = logging.getLogger(__name__)

app = typer.Typer(context_settings={"help_option_names": ["-h", "--help"]})


@app.callback()
def main(
    log_level: str = typer.Option("INFO", "--log-level", help="Logging level (DEBUG, INFO, WARNING...)."),
) -> None:
    """Decode and log readings from a tapped multimeter display."""
    level = getattr(logging, log_level.upper(), None)
    if not isinstance(level, int):
        raise typer.BadParameter(f"Unknown log level '{log_level}'", param_hint="--log-level")
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


@app.command("run")
def run_host(
    port: str = typer.Option("/dev/ttyUSB0", "--port", "-p", help="Serial device. Use '-' to read from stdin."),
    baudrate: int = typer.Option(115200, "--baud", help="Serial baudrate."),
    timeout: float = typer.Option(2.0, "--timeout", help="Serial read timeout (seconds)."),
    config_path: Optional[Path] = typer.Option(
        Path("host/config.json"), "--config", "-c", help="Path to the host config (JSON)."
    ),
    override: Optional[List[str]] = typer.Option(
        None,
        "--set",
        help="Override config keys, e.g. --set frame_format=binary --set graph.decimation=4",
    ),
) -> None:
    """Run the host loop: read frames, update the meter state, log readings."""
    if config_path is not None and not config_path.exists():
        logger.warning("Config %s not found, using defaults", config_path)
        config_path = None
    try:
        cfg = load_config(config_path, override or None)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    host = MeterHost(SerialSettings(port=port, baudrate=baudrate, timeout=timeout), cfg)
    try:
        host.run()
    except KeyboardInterrupt:
        logger.info("Stopping host (Ctrl+C)")


@app.command()
def decode(
    input_path: Path = typer.Option(..., "--in", help="Captured frames.", exists=True, readable=True),
    fmt: FrameFormat = typer.Option(FrameFormat.HEX, "--format", case_sensitive=False, help="Capture format."),
    stats: bool = typer.Option(False, "--stats", help="Append min/avg/max to every line."),
    errors: bool = typer.Option(True, "--errors/--no-errors", help="Also print non-numeric readings."),
    thermocouple: bool = typer.Option(False, "--tc", help="Show DC millivolt readings as °C."),
    csv_out: Optional[Path] = typer.Option(None, "--csv", help="Write the decoded readings to CSV."),
    plot_out: Optional[Path] = typer.Option(None, "--plot", help="Render the graph history to PNG."),
) -> None:
    """Replay a capture file and print one line per reading."""
    cfg = load_config(None, [f"log.include_stats={stats}", f"log.include_errors={errors}", "log.timestamp=false"])
    device = MeterDevice(sample_count=cfg.sample_count, thermocouple=thermocouple, graph_capacity=cfg.graph.capacity)
    parser = FrameParser(fmt)
    data_logger = ReadingLogger(cfg.log, keep_records=csv_out is not None)
    if fmt is FrameFormat.HEX:
        with input_path.open("r", encoding="utf-8") as fh:
            lines = list(fh)
        frames = list(parser.parse_hex(lines))
    else:
        with input_path.open("rb") as fh:
            frames = list(parser.parse_binary(iterate_binary_stream(fh)))
    for index, frame in enumerate(frames):
        device.process_frame(frame)
        line = data_logger.log(device.view(), ts_ms=float(index))
        if line is not None:
            typer.echo(line)

    transport = parser.stats()
    decoder = device.stats()
    typer.echo(
        f"# frames={transport['frames']} crc_errors={transport['crc_errors']} "
        f"length_errors={transport['length_errors']} parse_errors={transport['parse_errors']} "
        f"short_frames={decoder['short_frames']} duplicate_dp={decoder['duplicate_dp']}"
    )
    if csv_out is not None:
        data_logger.export_csv(csv_out)
    if plot_out is not None:
        try:
            plot_graph(device.view(), plot_out, cfg.graph.policy)
        except RuntimeError as exc:
            typer.echo(f"[warning] plotting skipped: {exc}")


@app.command()
def demo(
    out_dir: Path = typer.Option(Path("demo_output"), "--out", help="Target directory for the demo capture."),
) -> None:
    """Generate a synthetic capture, decode it and write the reports."""
    run_demo(out_dir)
    typer.echo(f"Demo capture and reports written to {out_dir}")


def run() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    run()
