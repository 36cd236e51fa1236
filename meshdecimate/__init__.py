"""
Surface Mesh Decimation using Quadric Error Metrics (QEM)
=========================================================

Edge-contraction decimation of triangle meshes stored as half-edge
structures, ordered by quadric error in a red-black cost tree, from
"Surface Simplification Using Quadric Error Metrics"
by Michael Garland and Paul S. Heckbert (SIGGRAPH 1997).
"""

from .exceptions import ConfigurationError, DecimationError, TopologyError
from .halfedge import HalfEdge, HalfEdgeMesh, Vertex
from .qem import Placement, Quadric, QuadricErrorMetrics
from .options import DecimationOptions
from .sorted_tree import RedBlackSortedTree
from .mesh_decimator import DecimationReport, MeshDecimator
from .evaluation import MeshEvaluator
from .visualization import MeshVisualizer
from .utils import decimate_trimesh, from_trimesh, to_trimesh

__version__ = "1.0.0"
__author__ = "Mesh Decimation Project"
__all__ = [
    "ConfigurationError", "DecimationError", "TopologyError",
    "HalfEdge", "HalfEdgeMesh", "Vertex",
    "Placement", "Quadric", "QuadricErrorMetrics",
    "DecimationOptions", "RedBlackSortedTree",
    "DecimationReport", "MeshDecimator", "MeshEvaluator", "MeshVisualizer",
    "decimate_trimesh", "from_trimesh", "to_trimesh",
]
