"""
Dataset ingest for CellCanvas.

Parses the exported JSON format, validates its structure and normalizes every
field to its canonical type before it becomes the active Dataset Model.

Error taxonomy:
- LoadError: the file cannot be read or is not valid JSON
- DatasetValidationError: the JSON is structurally invalid (blocks the load)
- warnings (ValidationResult.warnings): missing optional fields, load proceeds
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from cellcanvas.data.model import (
    Cell,
    ClusterInfo,
    DatasetMetadata,
    DifferentialExpression,
    SingleCellDataset,
    StringValue,
    to_metadata_value,
)


class LoadError(ValueError):
    """Raised when a dataset file cannot be read or parsed."""


class DatasetValidationError(ValueError):
    """Raised when a dataset fails structural validation."""

    def __init__(self, errors: List[str], warnings: Optional[List[str]] = None):
        self.errors = list(errors)
        self.warnings = list(warnings or [])
        super().__init__("Invalid dataset: " + "; ".join(self.errors))


@dataclass
class ValidationResult:
    """Outcome of validating a raw dataset object."""

    valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _default_cluster_color(idx: int) -> str:
    return f"hsl({(idx * 36) % 360}, 70%, 50%)"


def _invalid_entries(message: str, indices: List[int]) -> str:
    return f"{message} ({len(indices)} invalid, first at index {indices[0]})"


def _check_entries(cells: List[Any], clusters: Any) -> List[str]:
    """Type errors in individual cell and cluster entries."""
    errors: List[str] = []

    bad_cells = [i for i, c in enumerate(cells) if not isinstance(c, dict)]
    if bad_cells:
        errors.append(_invalid_entries("Cell entries must be objects", bad_cells))

    bad_meta: List[int] = []
    bad_values: List[int] = []
    for i, cell in enumerate(cells):
        if not isinstance(cell, dict) or cell.get("metadata") is None:
            continue
        meta = cell["metadata"]
        if not isinstance(meta, dict):
            bad_meta.append(i)
        elif any(v is not None and not isinstance(v, (str, int, float)) for v in meta.values()):
            bad_values.append(i)
    if bad_meta:
        errors.append(_invalid_entries("Cell 'metadata' must be an object", bad_meta))
    if bad_values:
        errors.append(_invalid_entries("Cell metadata values must be strings or numbers", bad_values))

    if isinstance(clusters, list):
        bad_clusters = [i for i, c in enumerate(clusters) if not isinstance(c, dict)]
        if bad_clusters:
            errors.append(_invalid_entries("Cluster entries must be objects", bad_clusters))

    return errors


def validate_dataset(data: Any) -> ValidationResult:
    """
    Check that a parsed JSON object can be loaded as a dataset.

    Hard errors: missing/empty ``cells``, non-numeric x/y/cluster on the first
    cell, missing ``clusters``, and any cell, cell metadata or cluster entry
    of the wrong type. Missing ``genes`` or ``metadata`` only warn.
    """
    errors: List[str] = []
    warnings: List[str] = []

    if not isinstance(data, dict):
        return ValidationResult(valid=False, errors=["Invalid JSON structure"])

    cells = data.get("cells")
    if not isinstance(cells, list):
        errors.append("Missing or invalid 'cells' array")
    elif len(cells) == 0:
        errors.append("'cells' array is empty")
    else:
        first = cells[0] if isinstance(cells[0], dict) else {}
        if not _is_number(first.get("x")) or not _is_number(first.get("y")):
            errors.append("Cells must have numeric 'x' and 'y' coordinates")
        if not _is_number(first.get("cluster")):
            errors.append("Cells must have numeric 'cluster' field")
        if not isinstance(first.get("id"), str):
            warnings.append("Cells should have string 'id' field (will be auto-generated)")

    clusters = data.get("clusters")
    if not isinstance(clusters, list):
        errors.append("Missing or invalid 'clusters' array")

    if isinstance(cells, list):
        errors.extend(_check_entries(cells, clusters))

    if not isinstance(data.get("genes"), list):
        warnings.append("Missing 'genes' array - gene search will be limited")

    if not isinstance(data.get("metadata"), dict):
        warnings.append("Missing 'metadata' - default values will be used")

    if not errors and isinstance(cells, list) and isinstance(clusters, list):
        known = set()
        for idx, cluster in enumerate(clusters):
            if isinstance(cluster, dict):
                known.add(_to_int(cluster.get("id"), idx))
        referenced = {_to_int(c.get("cluster"), 0) for c in cells if isinstance(c, dict)}
        missing = referenced - known
        if missing:
            warnings.append(
                f"Cells reference {len(missing)} cluster id(s) missing from 'clusters' "
                f"({', '.join(str(m) for m in sorted(missing)[:5])}) - default entries will be added"
            )

    return ValidationResult(valid=not errors, errors=errors, warnings=warnings)


def _to_int(value: Any, default: int) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return default


def _to_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return float("nan")


def normalize_dataset(data: Dict[str, Any]) -> SingleCellDataset:
    """
    Coerce a validated raw object into the canonical Dataset Model.

    Ids become strings, coordinates and cluster ids numbers, cluster cell
    counts are recomputed from the cells, and annotation options are derived
    from the string-typed metadata keys of the first cell when not provided.
    """
    raw_cells = data.get("cells") or []
    cells: List[Cell] = []
    for idx, raw in enumerate(raw_cells):
        raw_meta = raw.get("metadata") or {}
        cells.append(Cell(
            id=str(raw.get("id") or f"cell_{idx}"),
            x=_to_float(raw.get("x")),
            y=_to_float(raw.get("y")),
            cluster=_to_int(raw.get("cluster"), 0),
            metadata={str(k): to_metadata_value(v) for k, v in raw_meta.items() if v is not None},
        ))

    clusters: List[ClusterInfo] = []
    for idx, raw in enumerate(data.get("clusters") or []):
        clusters.append(ClusterInfo(
            id=_to_int(raw.get("id"), idx),
            name=str(raw.get("name") or f"Cluster {idx}"),
            cell_count=0,
            color=str(raw.get("color") or _default_cluster_color(idx)),
        ))

    # Every cell cluster must resolve to a cluster entry
    known = {c.id for c in clusters}
    for cluster_id in sorted({c.cluster for c in cells} - known):
        clusters.append(ClusterInfo(
            id=cluster_id,
            name=f"Cluster {cluster_id}",
            cell_count=0,
            color=_default_cluster_color(cluster_id),
        ))

    raw_genes = data.get("genes")
    genes = [str(g) for g in raw_genes] if isinstance(raw_genes, list) else []

    raw_meta = data.get("metadata") if isinstance(data.get("metadata"), dict) else {}
    metadata = DatasetMetadata(
        name=str(raw_meta.get("name") or "Uploaded Dataset"),
        description=str(raw_meta.get("description") or "User-uploaded single-cell dataset"),
        cell_count=len(cells),
        gene_count=len(genes),
        cluster_count=len(clusters),
        organism=str(raw_meta["organism"]) if raw_meta.get("organism") else None,
        tissue=str(raw_meta["tissue"]) if raw_meta.get("tissue") else None,
        source=str(raw_meta["source"]) if raw_meta.get("source") else None,
    )

    differential_expression = [
        DifferentialExpression(
            gene=str(de.get("gene")),
            cluster=str(de.get("cluster")),
            log_fc=_to_float(de.get("logFC")),
            p_value=_to_float(de.get("pValue")),
            p_adj=_to_float(de.get("pAdj")),
        )
        for de in (data.get("differentialExpression") or [])
        if isinstance(de, dict)
    ]

    expression = None
    raw_expression = data.get("expression")
    if isinstance(raw_expression, dict):
        expression = {
            str(gene): {str(cell_id): float(v) for cell_id, v in values.items() if _is_number(v)}
            for gene, values in raw_expression.items()
            if isinstance(values, dict)
        }

    annotation_options = data.get("annotationOptions")
    if isinstance(annotation_options, list) and annotation_options:
        annotation_options = [str(k) for k in annotation_options]
    elif cells:
        annotation_options = [
            key for key, value in cells[0].metadata.items() if isinstance(value, StringValue)
        ]
    else:
        annotation_options = []

    dataset = SingleCellDataset(
        metadata=metadata,
        cells=cells,
        genes=genes,
        clusters=clusters,
        differential_expression=differential_expression,
        expression=expression,
        annotation_options=annotation_options,
    )
    dataset.refresh_counts()
    return dataset


def parse_dataset_json(text: Union[str, bytes]) -> Tuple[SingleCellDataset, ValidationResult]:
    """
    Parse, validate and normalize a dataset from JSON text.

    Raises:
        LoadError: If the text is not valid JSON
        DatasetValidationError: If the dataset is structurally invalid
    """
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise LoadError(f"Failed to parse JSON: {e}") from e

    result = validate_dataset(data)
    if not result.valid:
        raise DatasetValidationError(result.errors, result.warnings)

    return normalize_dataset(data), result


def load_dataset(path: Union[str, Path]) -> Tuple[SingleCellDataset, ValidationResult]:
    """
    Load a dataset JSON file.

    Args:
        path: Path to a ``.json`` export

    Returns:
        Tuple of (dataset, validation result with any warnings)
    """
    path = Path(path)
    if path.suffix.lower() != ".json":
        raise LoadError(f"Only JSON files are supported: {path.name}")

    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise LoadError(f"Could not read {path}: {e}") from e

    return parse_dataset_json(text)
