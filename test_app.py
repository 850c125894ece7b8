"""Tests for the HTTP API."""
import pytest
from fastapi.testclient import TestClient

from app import app

COARSE = {"delta_rot_angle_deg": 30.0, "rot_angle_half_interval_deg": 30.0,
          "stress_ratio_half_interval": 0.1, "n_local_minima": 3}

FAULTS = [
    {"dip_direction_deg": 90, "dip_deg": 60, "rake_deg": 90, "sense": "N"},
    {"dip_direction_deg": 270, "dip_deg": 55, "rake_deg": 85, "sense": "N"},
    {"dip_direction_deg": 100, "dip_deg": 65, "rake_deg": 100, "sense": "n_rl"},
    {"dip_direction_deg": 280, "dip_deg": 50, "rake_deg": 100},
    {"dip_direction_deg": 60, "dip_deg": 70, "rake_deg": 70, "sense": "UKN"},
    {"dip_direction_deg": 240, "dip_deg": 62, "rake_deg": 95, "sense": "N"},
]


@pytest.fixture(scope="module")
def client():
    with TestClient(app) as c:
        yield c


def api(client, method, path, payload=None):
    if method == "POST":
        r = client.post(path, json=payload)
    else:
        r = client.get(path)
    return r.status_code, r.json()


# ═══════════════════════════════════════════════════════════════
# Service endpoints
# ═══════════════════════════════════════════════════════════════

def test_health(client):
    code, r = api(client, "GET", "/api/health")
    assert code == 200
    assert r["status"] == "ok"
    assert "version" in r


def test_options(client):
    code, r = api(client, "GET", "/api/options")
    assert code == 200
    assert "angular_deviation" in r["criteria"]
    assert "fibonacci_lattice" in r["search_methods"]
    assert "conical_grid" in r["pole_searches"]
    assert "rake_deg" in r["columns"]


def test_data_summary(client):
    code, r = api(client, "POST", "/api/data/summary", {"faults": FAULTS})
    assert code == 200
    assert r["fault_count"] == 6
    counts = {row["sense"]: row["count"] for row in r["by_sense"]}
    assert counts == {"N": 3, "N_RL": 1, "UKN": 2}


def test_data_summary_requires_faults(client):
    code, _ = api(client, "POST", "/api/data/summary", {})
    assert code == 400


# ═══════════════════════════════════════════════════════════════
# Inversion
# ═══════════════════════════════════════════════════════════════

def test_inversion(client):
    payload = {"faults": FAULTS, "sigma1": [0, 85], "sigma3": {"trend_deg": 90, "plunge_deg": 0},
               "stress_ratio": 0.5, "search_config": COARSE}
    code, r = api(client, "POST", "/api/inversion", payload)
    assert code == 200
    for key in ("sigma1", "sigma2", "sigma3", "R", "misfit", "initial_misfit", "improved",
                "stress_tensor", "per_fault_misfit_deg", "rotation_axis", "fault_count"):
        assert key in r
    assert r["fault_count"] == 6
    assert r["misfit"] <= r["initial_misfit"]
    assert len(r["per_fault_misfit_deg"]) == 6
    assert len(r["stress_tensor"]) == 3
    assert set(r["sigma1"]) == {"trend_deg", "plunge_deg"}
    assert "stereonet_img" not in r


def test_inversion_with_plots(client):
    payload = {"faults": FAULTS, "search_config": COARSE, "plots": True}
    code, r = api(client, "POST", "/api/inversion", payload)
    assert code == 200
    assert r["stereonet_img"].startswith("data:image/png;base64,")
    assert r["misfit_histogram_img"].startswith("data:image/png;base64,")


def test_friction_law_inversion(client):
    payload = {"faults": FAULTS, "criterion": "friction_law", "search_config": COARSE,
               "criterion_config": {"friction_angle_deg": 25, "cohesion": 0.1}}
    code, r = api(client, "POST", "/api/inversion", payload)
    assert code == 200
    assert r["criterion"] == "friction_law"


@pytest.mark.parametrize("overrides", [
    {"criterion": "least_squares"},
    {"method": "simulated_annealing"},
    {"criterion": "friction_law", "criterion_config": {"friction_angle_deg": 0}},
    {"search_config": {"unknown_option": 1}},
    {"sigma1": [10]},
    {"stress_ratio": "high"},
    {"faults": []},
    {"faults": [{"dip_deg": 60, "rake_deg": 90}]},
    {"faults": [{"dip_direction_deg": 90, "dip_deg": 60, "rake_deg": 90, "sense": "RL"}]},
])
def test_inversion_bad_request(client, overrides):
    payload = {"faults": FAULTS, "search_config": COARSE}
    payload.update(overrides)
    code, r = api(client, "POST", "/api/inversion", payload)
    assert code == 400
    assert "detail" in r


# ═══════════════════════════════════════════════════════════════
# Misfit domains
# ═══════════════════════════════════════════════════════════════

def test_regular_domain(client):
    payload = {"faults": FAULTS, "sigma1": [0, 85], "sigma3": [90, 0], "n": 3, "ny": 4,
               "x_axis": {"name": "R", "bounds": [0, 1]},
               "y_axis": {"name": "psi", "bounds": [0, 30]}}
    code, r = api(client, "POST", "/api/analysis/domain", payload)
    assert code == 200
    assert r["x"] == pytest.approx([0.0, 0.5, 1.0])
    assert r["y"] == pytest.approx([0.0, 10.0, 20.0, 30.0])
    assert len(r["values"]) == 3 and len(r["values"][0]) == 4
    assert (r["x_name"], r["y_name"], r["sampling"]) == ("R", "psi", "regular")


def test_random_domain_is_seeded(client):
    payload = {"faults": FAULTS, "sampling": "random", "n_samples": 10, "seed": 5,
               "x_axis": {"name": "theta", "bounds": [0, 90]},
               "y_axis": {"name": "phi", "bounds": [0, 360]},
               "fixed": {"psi_deg": 10}}
    code, first = api(client, "POST", "/api/analysis/domain", payload)
    _, second = api(client, "POST", "/api/analysis/domain", payload)
    assert code == 200
    assert first == second
    assert len(first["values"]) == 10
    assert all(0.0 <= t <= 90.0 for t in first["x"])


@pytest.mark.parametrize("overrides", [
    {"sampling": "spiral"},
    {"x_axis": {"name": "omega", "bounds": [0, 1]}},
    {"x_axis": {"name": "R"}},
    {"x_axis": {"name": "R", "bounds": [0, 2]}},
    {"n": 1},
    {"criterion": "least_squares"},
])
def test_domain_bad_request(client, overrides):
    payload = {"faults": FAULTS, "n": 3,
               "x_axis": {"name": "R", "bounds": [0, 1]},
               "y_axis": {"name": "psi", "bounds": [0, 30]}}
    payload.update(overrides)
    code, r = api(client, "POST", "/api/analysis/domain", payload)
    assert code == 400
    assert "detail" in r
