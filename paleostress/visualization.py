"""
Plots of inversion results.

- Lower-hemisphere equal-area stereonet of fault poles, slip directions
  and the principal stress axes
- Histogram of per-fault misfits
"""

import numpy as np
import matplotlib.pyplot as plt

from .geometry import vector_to_trend_plunge

AXIS_STYLES = {
    "sigma1": ("s", "#e41a1c", "σ1"),
    "sigma2": ("^", "#4daf4a", "σ2"),
    "sigma3": ("o", "#377eb8", "σ3"),
}


def equal_area_xy(trend_deg, plunge_deg) -> tuple:
    """Schmidt-net coordinates of lines given by trend/plunge (degrees)."""
    trend = np.radians(trend_deg)
    r = np.sqrt(2) * np.sin(np.radians(90.0 - np.asarray(plunge_deg)) / 2)
    return r * np.sin(trend), r * np.cos(trend)


def _primitive(ax):
    ax.set_aspect("equal")
    ax.set_xlim(-1.1, 1.1)
    ax.set_ylim(-1.1, 1.1)
    theta = np.linspace(0, 2 * np.pi, 200)
    ax.plot(np.cos(theta), np.sin(theta), "k-", linewidth=1)
    ax.axhline(0, color="gray", linewidth=0.5, linestyle="--")
    ax.axvline(0, color="gray", linewidth=0.5, linestyle="--")
    for angle, label in [(0, "N"), (90, "E"), (180, "S"), (270, "W")]:
        rad = np.radians(angle)
        ax.text(1.15 * np.sin(rad), 1.15 * np.cos(rad), label,
                ha="center", va="center", fontsize=10, fontweight="bold")
    ax.set_xticks([])
    ax.set_yticks([])


def plot_stereonet(faults, result: dict | None = None,
                   title: str = "Fault Poles and Principal Stresses", ax=None) -> plt.Axes:
    """Equal-area projection of fault poles, slip lines and principal axes.

    Parameters
    ----------
    faults : FaultSet
    result : optional dict from ``invert_stress``; its sigma1/2/3 entries
        are drawn as large markers
    """
    if ax is None:
        fig, ax = plt.subplots(figsize=(7, 7))
    _primitive(ax)

    if len(faults):
        poles = np.array([vector_to_trend_plunge(n) for n in faults.normals])
        slips = np.array([vector_to_trend_plunge(s) for s in faults.striations])
        px, py = equal_area_xy(poles[:, 0], poles[:, 1])
        sx, sy = equal_area_xy(slips[:, 0], slips[:, 1])
        ax.scatter(px, py, s=15, color="#555555", alpha=0.7, edgecolors="none",
                   label="Fault poles")
        ax.scatter(sx, sy, s=15, marker="x", color="#ff7f00", alpha=0.7,
                   label="Slip lines")

    if result is not None:
        for name, (marker, color, label) in AXIS_STYLES.items():
            axis = result.get(name)
            if axis is None:
                continue
            x, y = equal_area_xy(axis["trend_deg"], axis["plunge_deg"])
            ax.scatter([x], [y], s=140, marker=marker, color=color,
                       edgecolors="black", zorder=5, label=label)

    ax.set_title(title, fontsize=12, fontweight="bold")
    ax.legend(loc="upper left", fontsize=8, bbox_to_anchor=(1.02, 1))
    return ax


def plot_misfit_histogram(per_fault_deg, title: str = "Per-fault Misfit",
                          ax=None) -> plt.Axes:
    """Histogram of per-fault misfits in degrees."""
    if ax is None:
        fig, ax = plt.subplots(figsize=(7, 4))
    values = np.asarray(per_fault_deg, dtype=float)
    bins = np.arange(0, max(float(values.max(initial=0.0)), 10.0) + 5.0, 5.0)
    ax.hist(values, bins=bins, color="#377eb8", edgecolor="white")
    ax.axvline(np.mean(values) if len(values) else 0.0, color="#e41a1c",
               linestyle="--", label="Mean")
    ax.set_xlabel("Misfit (degrees)")
    ax.set_ylabel("Faults")
    ax.set_title(title, fontsize=12, fontweight="bold")
    ax.legend(fontsize=8)
    return ax
