"""Plotting helpers for the graph history."""
from __future__ import annotations

from pathlib import Path
from typing import Any

import numpy as np

from .meter.device import MeterView
from .meter.labels import YScalePolicy, compute_scale, format_label


def plot_graph(view: MeterView, output_path: Path, policy: YScalePolicy = YScalePolicy.ZOOM) -> Path:
    """Render the graph history of *view* to a PNG with the meter's axis labels."""
    plt = _require_matplotlib()
    output_path.parent.mkdir(parents=True, exist_ok=True)
    values = view.graph.values()
    grmin = float(values.min()) if values.size else 0.0
    grmax = float(values.max()) if values.size else 0.0
    scale = compute_scale(grmin, grmax, policy)

    fig, ax = plt.subplots(figsize=(9, 3.5))
    x = np.arange(values.size) * view.graph.period
    ax.plot(x, values, color="black", linewidth=1.0)
    if scale.includes_zero:
        ax.axhline(0.0, color="gray", linewidth=0.8, linestyle="--")
    ax.set_ylim(scale.low.value(), scale.high.value())
    ax.set_yticks([scale.low.value(), scale.high.value()])
    pow10 = view.unit.pow10
    ax.set_yticklabels([format_label(scale.low, pow10), format_label(scale.high, pow10)])
    ax.set_xlim(0, max(view.graph.capacity - 1, 1) * view.graph.period)
    ax.set_xlabel(f"Samples (1 point every {view.graph.period})")
    ax.set_ylabel(view.unit.quantity or "value")
    ax.set_title(f"{view.message.strip() or '-'} {view.unit}")

    fig.tight_layout()
    fig.savefig(output_path, dpi=150)
    plt.close(fig)
    return output_path


def _require_matplotlib() -> Any:
    home_cache = Path.home() / ".cache" / "fontconfig"
    try:
        home_cache.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise RuntimeError("matplotlib cannot write font cache in this environment") from exc

    try:
        import matplotlib
        matplotlib.use("Agg", force=True)
        import matplotlib.pyplot as plt  # type: ignore
    except ImportError as exc:  # pragma: no cover - optional dependency
        raise RuntimeError("matplotlib is required for plotting; install segtap[plot]") from exc
    except Exception as exc:  # pragma: no cover - environment issues
        raise RuntimeError(f"matplotlib initialisation failed: {exc}") from exc
    return plt
