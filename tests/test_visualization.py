import matplotlib.pyplot as plt
import numpy as np
import pytest

from meshdecimate.mesh_decimator import MeshDecimator
from meshdecimate.utils import create_grid_mesh, from_trimesh, to_trimesh
from meshdecimate.visualization import MeshVisualizer


@pytest.fixture
def decimated():
    original = create_grid_mesh(8, 8, amplitude=0.2)
    hemesh = from_trimesh(original)
    decimator = MeshDecimator(maxtriangles=40)
    decimator.decimate(hemesh)
    return original, to_trimesh(hemesh), decimator


def test_comparison_plot(tmp_path, decimated):
    original, simplified, _ = decimated
    path = tmp_path / "comparison.png"
    fig = MeshVisualizer(figsize=(6, 3)).plot_mesh_comparison(
        original, simplified, save_path=str(path))
    assert len(fig.axes) == 2
    assert path.exists()
    plt.close(fig)


def test_error_heatmap(tmp_path, decimated):
    _, simplified, decimator = decimated
    path = tmp_path / "heatmap.png"
    fig = MeshVisualizer(figsize=(4, 4)).plot_error_heatmap(
        simplified, decimator.vertex_errors(), save_path=str(path))
    assert path.exists()
    plt.close(fig)


def test_heatmap_with_constant_errors(decimated):
    _, simplified, _ = decimated
    fig = MeshVisualizer(figsize=(4, 4)).plot_error_heatmap(
        simplified, np.zeros(len(simplified.vertices)))
    plt.close(fig)


def test_collapse_cost_plot(decimated):
    _, _, decimator = decimated
    fig = MeshVisualizer(figsize=(6, 4)).plot_collapse_costs(
        decimator.get_collapse_history(), tolerance=0.01)
    ax = fig.axes[0]
    assert len(ax.lines) == 3
    assert len(ax.lines[0].get_ydata()) == len(decimator.get_collapse_history())
    plt.close(fig)
