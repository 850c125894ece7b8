"""Paleostress - FastAPI Web Application."""

import io
import base64
import asyncio
import logging
import threading
from contextlib import asynccontextmanager

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt

import numpy as np
import pandas as pd
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from paleostress import __version__
from paleostress.analysis import DomainAxis, random_domain_2d, regular_domain_2d
from paleostress.config import CRITERIA, POLE_SEARCHES, SEARCH_METHODS, MisfitCriterionConfig
from paleostress.data_loader import (
    clean_fault_table, fault_table_summary, faults_from_dataframe,
    DIP_DIRECTION_COL, DIP_COL, RAKE_COL, SENSE_COL,
)
from paleostress.geometry import rough_rotation_tensor
from paleostress.inversion import invert_stress
from paleostress.logging_config import setup_logging
from paleostress.misfit import create_criterion
from paleostress.visualization import plot_misfit_histogram, plot_stereonet

logger = logging.getLogger("paleostress.app")

# ── Globals ──────────────────────────────────────────
plot_lock = threading.Lock()


# ── Helpers ──────────────────────────────────────────

def fig_to_base64(fig, dpi=120) -> str:
    """Serialize a matplotlib figure to a base64 data URI."""
    buf = io.BytesIO()
    fig.savefig(buf, format="png", dpi=dpi, bbox_inches="tight",
                facecolor="white", edgecolor="none")
    plt.close(fig)
    buf.seek(0)
    b64 = base64.b64encode(buf.read()).decode("utf-8")
    return f"data:image/png;base64,{b64}"


def render_plot(plot_func, *args, **kwargs) -> str:
    """Thread-safe wrapper: call a plot function and return base64 image."""
    with plot_lock:
        ax = plot_func(*args, **kwargs)
        return fig_to_base64(ax.figure)


def _sanitize_for_json(obj):
    """Recursively convert numpy types to Python types for JSON."""
    if isinstance(obj, dict):
        return {k: _sanitize_for_json(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [_sanitize_for_json(v) for v in obj]
    elif isinstance(obj, np.bool_):
        return bool(obj)
    elif isinstance(obj, (np.integer,)):
        return int(obj)
    elif isinstance(obj, (float, np.floating)):
        v = float(obj)
        return None if not np.isfinite(v) else v
    elif isinstance(obj, np.ndarray):
        return _sanitize_for_json(obj.tolist())
    return obj


def _axis_param(body: dict, name: str, default: tuple) -> tuple:
    """Read a (trend, plunge) pair given as a list or a dict."""
    value = body.get(name)
    if value is None:
        return default
    try:
        if isinstance(value, dict):
            return float(value["trend_deg"]), float(value["plunge_deg"])
        trend, plunge = value
        return float(trend), float(plunge)
    except (KeyError, TypeError, ValueError):
        raise HTTPException(400, f"{name} must be [trend, plunge] or "
                                 "{trend_deg, plunge_deg} in degrees")


def _fault_table(body: dict) -> pd.DataFrame:
    records = body.get("faults")
    if not records:
        raise HTTPException(400, "faults is required (list of fault records)")
    try:
        return clean_fault_table(pd.DataFrame(records))
    except ValueError as exc:
        raise HTTPException(400, str(exc))


# ── App lifecycle ────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info("Paleostress API %s ready", __version__)
    yield


app = FastAPI(title="Paleostress", version=__version__, lifespan=lifespan)


# ── Global error handler for production safety ───────

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch unhandled errors and return a clean JSON response.

    Never expose raw tracebacks to clients.
    """
    logger.exception("Unhandled error on %s", request.url.path)
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "message": str(exc)[:200],
            "suggestion": "Try again or contact support if the issue persists.",
        },
    )


# ── API ──────────────────────────────────────────────

@app.get("/api/health")
async def health():
    return {"status": "ok", "version": __version__}


@app.get("/api/options")
async def options():
    return {
        "criteria": CRITERIA,
        "search_methods": SEARCH_METHODS,
        "pole_searches": POLE_SEARCHES,
        "columns": [DIP_DIRECTION_COL, DIP_COL, RAKE_COL, SENSE_COL],
    }


@app.post("/api/data/summary")
async def data_summary(request: Request):
    body = await request.json()
    df = _fault_table(body)
    summary = fault_table_summary(df).reset_index()
    return _sanitize_for_json({
        "fault_count": len(df),
        "by_sense": summary.to_dict(orient="records"),
    })


@app.post("/api/inversion")
async def run_inversion(request: Request):
    body = await request.json()
    df = _fault_table(body)
    sigma1 = _axis_param(body, "sigma1", (0.0, 90.0))
    sigma3 = _axis_param(body, "sigma3", (0.0, 0.0))
    stress_ratio = body.get("stress_ratio")
    if stress_ratio is not None:
        try:
            stress_ratio = float(stress_ratio)
        except (TypeError, ValueError):
            raise HTTPException(400, "stress_ratio must be a number in [0, 1]")

    try:
        faults = faults_from_dataframe(df)
        result = await asyncio.to_thread(
            invert_stress, faults,
            sigma1=sigma1, sigma3=sigma3, stress_ratio=stress_ratio,
            criterion=body.get("criterion", "angular_deviation"),
            method=body.get("method", "fibonacci_lattice"),
            criterion_config=body.get("criterion_config"),
            search_config=body.get("search_config"),
            pole_search=body.get("pole_search"),
        )
    except (TypeError, ValueError) as exc:
        # ConfigurationError is a ValueError
        raise HTTPException(400, str(exc))

    response = {
        "sigma1": result["sigma1"],
        "sigma2": result["sigma2"],
        "sigma3": result["sigma3"],
        "R": result["R"],
        "misfit": round(result["misfit"], 6),
        "initial_misfit": round(result["initial_misfit"], 6),
        "improved": result["improved"],
        "mean_misfit_deg": round(result["mean_misfit_deg"], 2),
        "rotation_axis": result["rotation_axis"],
        "rotation_angle_deg": result["rotation_angle_deg"],
        "stress_tensor": np.round(result["stress_tensor"], 6),
        "per_fault_misfit_deg": np.round(result["per_fault_misfit_deg"], 3),
        "criterion": result["criterion"],
        "method": result["method"],
        "fault_count": result["n_faults"],
    }

    if body.get("plots", False):
        response["stereonet_img"] = await asyncio.to_thread(
            render_plot, plot_stereonet, faults, result
        )
        response["misfit_histogram_img"] = await asyncio.to_thread(
            render_plot, plot_misfit_histogram, result["per_fault_misfit_deg"]
        )

    return _sanitize_for_json(response)


def _domain_axis(body: dict, name: str) -> DomainAxis:
    """Swept parameter from {name, bounds}; angle bounds are in degrees."""
    value = body.get(name)
    try:
        param = value["name"]
        low, high = (float(b) for b in value["bounds"])
    except (KeyError, TypeError, ValueError):
        raise HTTPException(400, f"{name} must be {{name, bounds: [low, high]}}")
    if param != "R":
        low, high = np.radians(low), np.radians(high)
    return DomainAxis(param, (low, high))


@app.post("/api/analysis/domain")
async def misfit_domain(request: Request):
    body = await request.json()
    df = _fault_table(body)
    sigma1 = _axis_param(body, "sigma1", (0.0, 90.0))
    sigma3 = _axis_param(body, "sigma3", (0.0, 0.0))
    sampling = body.get("sampling", "regular")

    try:
        faults = faults_from_dataframe(df)
        config = MisfitCriterionConfig.from_dict(body.get("criterion_config"))
        criterion = create_criterion(body.get("criterion", "angular_deviation"), faults, config)
        rough = rough_rotation_tensor(sigma1, sigma3)
        x_axis = _domain_axis(body, "x_axis")
        y_axis = _domain_axis(body, "y_axis")
        fixed = body.get("fixed")
        if sampling == "regular":
            x, y, values = await asyncio.to_thread(
                regular_domain_2d, criterion, rough, x_axis, y_axis,
                n=body.get("n", 20), ny=body.get("ny"), fixed=fixed,
            )
            response = {"x": x, "y": y, "values": np.degrees(values)}
        elif sampling == "random":
            samples, values = await asyncio.to_thread(
                random_domain_2d, criterion, rough, x_axis, y_axis,
                n_samples=body.get("n_samples", 500), seed=body.get("seed"), fixed=fixed,
            )
            response = {"x": samples[:, 0], "y": samples[:, 1], "values": np.degrees(values)}
        else:
            raise HTTPException(400, "sampling must be 'regular' or 'random'")
    except (TypeError, ValueError) as exc:
        raise HTTPException(400, str(exc))

    # Angular coordinates go back out in degrees
    for key, axis in (("x", x_axis), ("y", y_axis)):
        if axis.name != "R":
            response[key] = np.degrees(response[key])
    response.update({"x_name": x_axis.name, "y_name": y_axis.name, "sampling": sampling})
    return _sanitize_for_json(response)
