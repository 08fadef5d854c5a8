"""
Modal components for CellCanvas.

Provides modals for:
- Cluster annotation (rename, merge, recolor, reset)
- Dataset upload with validation report
"""

from cellcanvas.components.modals.annotation import cluster_options, create_annotation_modal
from cellcanvas.components.modals.upload import create_upload_modal, create_validation_report

__all__ = [
    "cluster_options",
    "create_annotation_modal",
    "create_upload_modal",
    "create_validation_report",
]
