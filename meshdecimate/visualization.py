"""
Mesh Visualization Module
=========================

Matplotlib views of decimation results: side-by-side comparison, quadric
error heatmap and collapse cost history.
"""

import logging
from typing import List, Optional, Tuple

import matplotlib.pyplot as plt
import numpy as np
import trimesh
from matplotlib import cm
from mpl_toolkits.mplot3d.art3d import Poly3DCollection

logger = logging.getLogger(__name__)


class MeshVisualizer:
    """
    Visualization tools for mesh simplification results.

    Provides:
    - Side-by-side mesh comparison
    - Error heatmap visualization
    - Cost history of contracted edges
    """

    def __init__(self, figsize: Tuple[int, int] = (14, 7)):
        """
        Initialize visualizer.

        Args:
            figsize: Default figure size for plots
        """
        self.figsize = figsize
        self.error_colormap = cm.RdYlGn_r

    def plot_mesh_comparison(self, original: trimesh.Trimesh,
                             simplified: trimesh.Trimesh,
                             title: str = "Mesh Comparison",
                             show_wireframe: bool = True,
                             save_path: Optional[str] = None) -> plt.Figure:
        """
        Create side-by-side comparison of original and simplified meshes.

        Args:
            original: Original high-resolution mesh
            simplified: Simplified mesh
            title: Plot title
            show_wireframe: Whether to show wireframe overlay
            save_path: Optional path to save the figure

        Returns:
            Matplotlib figure object
        """
        fig, axes = plt.subplots(1, 2, figsize=self.figsize,
                                 subplot_kw={'projection': '3d'})
        # Both meshes share the frame of the original
        center, scale = self._frame(original)
        self._plot_single_mesh(axes[0], original,
                               f"Original\n({len(original.faces)} faces, {len(original.vertices)} vertices)",
                               show_wireframe, center, scale)
        self._plot_single_mesh(axes[1], simplified,
                               f"Simplified\n({len(simplified.faces)} faces, {len(simplified.vertices)} vertices)",
                               show_wireframe, center, scale)

        fig.suptitle(title, fontsize=14, fontweight='bold')
        fig.tight_layout()
        self._save(fig, save_path, "comparison")
        return fig

    def _frame(self, mesh: trimesh.Trimesh) -> Tuple[np.ndarray, float]:
        vertices = np.asarray(mesh.vertices, dtype=float)
        if len(vertices) == 0:
            return np.zeros(3), 1.0
        center = vertices.mean(axis=0)
        scale = float(np.max(np.abs(vertices - center)))
        return center, scale if scale > 0.0 else 1.0

    def _plot_single_mesh(self, ax, mesh: trimesh.Trimesh, title: str,
                          show_wireframe: bool, center: np.ndarray, scale: float,
                          vertex_colors: Optional[np.ndarray] = None):
        """Plot a single mesh on a 3D axis, normalized to the unit cube."""
        vertices = (np.asarray(mesh.vertices, dtype=float) - center) / scale
        faces = np.asarray(mesh.faces, dtype=int)
        triangles = vertices[faces]

        if vertex_colors is not None:
            # Average vertex values on each face
            face_colors = self.error_colormap(vertex_colors[faces].mean(axis=1))
        else:
            face_colors = self._compute_face_colors(triangles)

        poly = Poly3DCollection(triangles, facecolors=face_colors,
                                edgecolors='black' if show_wireframe else 'none',
                                linewidths=0.1 if show_wireframe else 0,
                                alpha=0.9)
        ax.add_collection3d(poly)

        ax.set_xlim(-1, 1)
        ax.set_ylim(-1, 1)
        ax.set_zlim(-1, 1)
        ax.set_box_aspect([1, 1, 1])

        ax.set_title(title, fontsize=10)
        ax.set_xlabel('X')
        ax.set_ylabel('Y')
        ax.set_zlabel('Z')

    def _compute_face_colors(self, triangles: np.ndarray) -> np.ndarray:
        """Compute face colors based on normals for shading."""
        light_dir = np.array([1, 1, 2]) / np.sqrt(6.0)

        normals = np.cross(triangles[:, 1] - triangles[:, 0],
                           triangles[:, 2] - triangles[:, 0]).reshape(-1, 3)
        norms = np.linalg.norm(normals, axis=1)
        norms[norms < 1e-10] = 1.0
        normals = normals / norms[:, None]

        # Diffuse lighting
        intensity = np.clip(normals @ light_dir, 0.2, 1.0)

        colors = np.zeros((len(triangles), 4))
        colors[:, 0] = 0.3 + 0.4 * intensity
        colors[:, 1] = 0.4 + 0.4 * intensity
        colors[:, 2] = 0.6 + 0.3 * intensity
        colors[:, 3] = 1.0
        return colors

    def plot_error_heatmap(self, mesh: trimesh.Trimesh,
                           vertex_errors: np.ndarray,
                           title: str = "Vertex Error Heatmap",
                           save_path: Optional[str] = None) -> plt.Figure:
        """
        Visualize vertex errors as a heatmap on the mesh.

        Args:
            mesh: The mesh to visualize
            vertex_errors: Per-vertex error values, as returned by
                           ``MeshDecimator.vertex_errors``
            title: Plot title
            save_path: Optional path to save the figure

        Returns:
            Matplotlib figure object
        """
        fig = plt.figure(figsize=self.figsize)
        ax3d = fig.add_subplot(1, 1, 1, projection='3d')

        low = float(vertex_errors.min()) if len(vertex_errors) else 0.0
        high = float(vertex_errors.max()) if len(vertex_errors) else 1.0
        errors_normalized = np.zeros_like(vertex_errors, dtype=float)
        if high > low:
            errors_normalized = (vertex_errors - low) / (high - low)

        center, scale = self._frame(mesh)
        self._plot_single_mesh(ax3d, mesh, title, False, center, scale,
                               vertex_colors=errors_normalized)

        sm = plt.cm.ScalarMappable(cmap=self.error_colormap,
                                   norm=plt.Normalize(low, high))
        sm.set_array([])
        cbar = fig.colorbar(sm, ax=ax3d, shrink=0.6, aspect=20, pad=0.1)
        cbar.set_label('Quadric Error', fontsize=10)

        self._save(fig, save_path, "heatmap")
        return fig

    def plot_collapse_costs(self, history: List[dict],
                            tolerance: Optional[float] = None,
                            save_path: Optional[str] = None) -> plt.Figure:
        """
        Plot the cost of each contraction in the order they were done.

        Args:
            history: Collapse history of a ``MeshDecimator``
            tolerance: Optional squared size drawn as a horizontal line
            save_path: Optional path to save the figure

        Returns:
            Matplotlib figure object
        """
        fig, ax = plt.subplots(figsize=(self.figsize[0], self.figsize[1] / 2))
        keys = [entry['cost'] for entry in history]
        errors = [entry['error'] for entry in history]
        ax.plot(keys, '.', color='steelblue', markersize=2, label='Tree key')
        ax.plot(errors, '.', color='crimson', markersize=2, label='Placement error')
        if tolerance is not None:
            ax.axhline(y=tolerance, color='black', linestyle='--', label='Tolerance')
        ax.set_xlabel('Contraction')
        ax.set_ylabel('Cost')
        ax.set_title('Contraction Costs')
        ax.legend()
        fig.tight_layout()
        self._save(fig, save_path, "cost history")
        return fig

    def _save(self, fig: plt.Figure, save_path: Optional[str], what: str):
        if save_path:
            fig.savefig(save_path, dpi=150, bbox_inches='tight')
            logger.info("Saved %s to %s", what, save_path)
