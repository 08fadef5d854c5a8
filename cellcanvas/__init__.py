"""
CellCanvas - Local webapp for exploring single-cell RNA-seq embeddings.

An interactive scatter explorer with gene-expression color scales, lasso and
rectangle selection, cell filtering and cluster re-annotation.
"""

__version__ = "0.1.0"

from cellcanvas.config import Config

__all__ = ["Config", "__version__"]
