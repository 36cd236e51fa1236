"""
Mesh Evaluation Module
======================

Measures how far a decimated surface is from its input:
- Hausdorff and Chamfer distances on surface samples
- Face/vertex counts and area change
- Boundary preservation (outline length, drift of boundary vertices)
- Triangle shape and dihedral quality
"""

from typing import Dict, Tuple

import numpy as np
import trimesh
from scipy.spatial import cKDTree

from .halfedge import HalfEdgeMesh
from .quality import dihedral_quality, shape_quality
from .utils import boundary_edges, boundary_vertices

# (label, metric key, format) rows of the text report, by section
_REPORT_SECTIONS = [
    ("GEOMETRIC ACCURACY", [
        ("Hausdorff Distance", "hausdorff_distance", "{:>12.6f}"),
        ("  Forward", "hausdorff_forward", "{:>12.6f}"),
        ("  Backward", "hausdorff_backward", "{:>12.6f}"),
        ("Chamfer Distance", "chamfer_distance", "{:>12.6f}"),
        ("Area Change", "area_error", "{:>11.4%}"),
    ]),
    ("TRIANGLE QUALITY", [
        ("Min Shape Quality", "min_shape_quality", "{:>12.6f}"),
        ("Mean Shape Quality", "mean_shape_quality", "{:>12.6f}"),
        ("Min Dihedral Cosine", "min_dihedral_cosine", "{:>12.6f}"),
    ]),
    ("BOUNDARY PRESERVATION", [
        ("Boundary Edges", "simplified_boundary_edges", "{:>12d}"),
        ("Boundary Vertices", "simplified_boundary_vertices", "{:>12d}"),
        ("Length Change", "boundary_length_change", "{:>11.4%}"),
        ("Max Boundary Drift", "boundary_drift", "{:>12.6f}"),
        ("Watertight", "simplified_is_watertight", "{:>12}"),
    ]),
    ("RUN", [
        ("Runtime (s)", "runtime", "{:>12.4f}"),
    ]),
]


class MeshEvaluator:
    """
    Compares a decimated mesh against the mesh it was built from.

    Distances are measured between point sets made of the mesh vertices
    and ``sample_points`` random surface samples of each mesh.
    """

    def __init__(self, sample_points: int = 10000):
        self.sample_points = sample_points

    def compute_all_metrics(self, original: trimesh.Trimesh,
                            simplified: trimesh.Trimesh) -> Dict[str, float]:
        """
        Compute counts, distances, area change, boundary and shape metrics.

        Args:
            original: Input mesh
            simplified: Decimated mesh

        Returns:
            Dictionary of metric names to values
        """
        metrics = {
            'original_faces': len(original.faces),
            'simplified_faces': len(simplified.faces),
            'original_vertices': len(original.vertices),
            'simplified_vertices': len(simplified.vertices),
        }
        metrics['face_reduction_ratio'] = metrics['simplified_faces'] / max(1, metrics['original_faces'])
        metrics['vertex_reduction_ratio'] = metrics['simplified_vertices'] / max(1, metrics['original_vertices'])

        points1 = self._sample(original)
        points2 = self._sample(simplified)
        (metrics['hausdorff_distance'], metrics['hausdorff_forward'],
         metrics['hausdorff_backward']) = self._hausdorff(points1, points2)
        metrics['chamfer_distance'] = self._chamfer(points1, points2)

        metrics['original_area'] = float(original.area)
        metrics['simplified_area'] = float(simplified.area)
        metrics['area_error'] = (abs(metrics['simplified_area'] - metrics['original_area'])
                                 / max(metrics['original_area'], 1e-10))

        metrics.update(self.boundary_preservation_metrics(original, simplified))

        qualities = self.shape_qualities(simplified)
        metrics['min_shape_quality'] = float(qualities.min()) if len(qualities) else np.nan
        metrics['mean_shape_quality'] = float(qualities.mean()) if len(qualities) else np.nan
        return metrics

    def _sample(self, mesh: trimesh.Trimesh) -> np.ndarray:
        points = np.asarray(mesh.vertices, dtype=float)
        if self.sample_points > 0 and len(mesh.faces) > 0:
            points = np.vstack([points, mesh.sample(self.sample_points)])
        return points

    def hausdorff_distance(self, mesh1: trimesh.Trimesh,
                           mesh2: trimesh.Trimesh) -> Tuple[float, float, float]:
        """
        Symmetric Hausdorff distance between two surfaces.

        Returns:
            Tuple of (symmetric, mesh1 -> mesh2, mesh2 -> mesh1) distances
        """
        return self._hausdorff(self._sample(mesh1), self._sample(mesh2))

    def _hausdorff(self, points1: np.ndarray,
                   points2: np.ndarray) -> Tuple[float, float, float]:
        forward = float(np.max(cKDTree(points2).query(points1)[0]))
        backward = float(np.max(cKDTree(points1).query(points2)[0]))
        return max(forward, backward), forward, backward

    def chamfer_distance(self, mesh1: trimesh.Trimesh,
                         mesh2: trimesh.Trimesh) -> float:
        """Sum over both directions of the mean squared nearest-sample distance."""
        return self._chamfer(self._sample(mesh1), self._sample(mesh2))

    def _chamfer(self, points1: np.ndarray, points2: np.ndarray) -> float:
        forward = cKDTree(points2).query(points1)[0]
        backward = cKDTree(points1).query(points2)[0]
        return float(np.mean(forward ** 2) + np.mean(backward ** 2))

    def boundary_preservation_metrics(self, original: trimesh.Trimesh,
                                      simplified: trimesh.Trimesh) -> Dict[str, float]:
        """
        Outline statistics of both meshes.

        ``boundary_drift`` is the largest distance from a boundary vertex
        of the decimated mesh to the closest boundary vertex of the input;
        it is 0 when boundary vertices were only removed, never moved.
        """
        metrics = {}
        outlines = {}
        for name, mesh in (('original', original), ('simplified', simplified)):
            vertices = np.asarray(mesh.vertices, dtype=float)
            edges = boundary_edges(mesh.faces)
            border = boundary_vertices(mesh.faces)
            length = float(np.linalg.norm(vertices[edges[:, 0]] - vertices[edges[:, 1]], axis=1).sum())
            metrics[f'{name}_boundary_edges'] = len(edges)
            metrics[f'{name}_boundary_vertices'] = len(border)
            metrics[f'{name}_boundary_length'] = length
            metrics[f'{name}_is_watertight'] = int(mesh.is_watertight)
            outlines[name] = vertices[border]

        orig_length = metrics['original_boundary_length']
        if orig_length > 0:
            metrics['boundary_length_change'] = abs(metrics['simplified_boundary_length'] - orig_length) / orig_length
        else:
            metrics['boundary_length_change'] = 0.0

        if len(outlines['original']) and len(outlines['simplified']):
            distances, _ = cKDTree(outlines['original']).query(outlines['simplified'])
            metrics['boundary_drift'] = float(distances.max())
        else:
            metrics['boundary_drift'] = 0.0
        return metrics

    def shape_qualities(self, mesh: trimesh.Trimesh) -> np.ndarray:
        """Shape quality of every face, 1 for equilateral triangles."""
        vertices = np.asarray(mesh.vertices, dtype=float)
        return np.array([shape_quality(*vertices[face]) for face in mesh.faces])

    def min_dihedral_cosine(self, hemesh: HalfEdgeMesh) -> float:
        """
        Minimal cosine between normals of adjacent triangles.

        Negative values on a smooth input reveal folded triangles.
        """
        ret = 1.0
        for t in hemesh.real_triangles():
            ret = min(ret, dihedral_quality(hemesh, t))
        return ret

    def generate_report(self, metrics: Dict[str, float],
                        method_name: str = "QEM") -> str:
        """
        Format metrics as a text report; missing metrics are left out.

        Args:
            metrics: Dictionary returned by :meth:`compute_all_metrics`,
                     possibly extended with ``min_dihedral_cosine`` and
                     ``runtime``
            method_name: Title of the report
        """
        lines = [
            "=" * 60,
            f"Mesh Simplification Report - {method_name}",
            "=" * 60,
            "",
            "MESH STATISTICS",
            "-" * 40,
            f"  Faces:     {metrics.get('original_faces', 'N/A'):>8} -> "
            f"{metrics.get('simplified_faces', 'N/A'):>8}",
            f"  Vertices:  {metrics.get('original_vertices', 'N/A'):>8} -> "
            f"{metrics.get('simplified_vertices', 'N/A'):>8}",
            f"  Kept:      {metrics.get('face_reduction_ratio', 0.0):>11.2%} of faces",
        ]
        for title, rows in _REPORT_SECTIONS:
            present = [(label, fmt.format(metrics[key])) for label, key, fmt in rows
                       if key in metrics]
            if not present:
                continue
            lines.extend(["", title, "-" * 40])
            lines.extend(f"  {label + ':':<22} {value}" for label, value in present)
        lines.extend(["", "=" * 60])
        return "\n".join(lines)

    def print_report(self, metrics: Dict[str, float], method_name: str = "QEM"):
        print(self.generate_report(metrics, method_name))
