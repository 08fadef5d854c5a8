"""
Demo dataset for CellCanvas.

Holds the canonical marker-gene table used to synthesize expression for genes
that have no embedded values, and generates a UMAP-like developmental heart
dataset for trying the explorer without an export.
"""

from typing import Dict, List, Optional

import numpy as np

from cellcanvas.data.model import (
    Cell,
    ClusterInfo,
    DatasetMetadata,
    DifferentialExpression,
    NumberValue,
    SingleCellDataset,
    StringValue,
)

CLUSTER_NAMES = [
    "Cardiomyocytes",
    "Endothelial",
    "Fibroblasts",
    "Smooth Muscle",
    "Macrophages",
    "T Cells",
    "Epicardial",
    "Endocardial",
    "Neural Crest",
    "Pericytes",
]

CLUSTER_COLORS = [
    (52, 152, 165),   # teal
    (215, 95, 130),   # pink
    (210, 180, 60),   # gold
    (90, 165, 110),   # green
    (165, 105, 180),  # purple
    (215, 130, 65),   # orange
    (75, 170, 155),   # teal-green
    (190, 100, 165),  # magenta
    (130, 170, 85),   # lime
    (100, 140, 200),  # blue
]

CLUSTER_CENTERS = [
    (15, 25), (-25, 35), (-5, -15), (30, -5), (-30, -25),
    (45, 15), (-15, 10), (10, -35), (-40, 5), (25, 40),
]

MARKER_GENES: Dict[int, List[str]] = {
    0: ["MYH7", "TNNT2", "MYL2", "ACTC1", "TNNC1"],
    1: ["EMCN", "PLVAP", "CDH5", "PECAM1", "VWF"],
    2: ["COL1A1", "DCN", "LUM", "POSTN", "COL3A1"],
    3: ["ACTA2", "TAGLN", "MYH11", "CNN1", "MYOCD"],
    4: ["CD68", "CD14", "CSF1R", "MARCO", "C1QA"],
    5: ["CD3E", "CD3D", "CD2", "IL7R", "TCF7"],
    6: ["WT1", "TBX18", "ALDH1A2", "UPK3B", "MSLN"],
    7: ["NPR3", "HAPLN1", "NFATC1", "SOX9", "NOTCH1"],
    8: ["SOX10", "TFAP2A", "FOXD3", "PAX3", "NGFR"],
    9: ["RGS5", "PDGFRB", "NOTCH3", "KCNJ8", "DES"],
}

HOUSEKEEPING_GENES = [
    "GAPDH", "ACTB", "RPL13A", "B2M", "HPRT1", "TBP", "PPIA", "RPLP0",
    "GUSB", "HMBS", "YWHAZ", "SDHA", "TFRC", "ATP5F1", "PGK1",
]

ALL_GENES = list(dict.fromkeys(
    [g for genes in MARKER_GENES.values() for g in genes] + HOUSEKEEPING_GENES
))


def cluster_color_css(cluster_id: int) -> str:
    r, g, b = CLUSTER_COLORS[cluster_id % len(CLUSTER_COLORS)]
    return f"rgb({r},{g},{b})"


def _generate_cells(count: int, rng: np.random.Generator) -> List[Cell]:
    cells: List[Cell] = []
    per_cluster = count // len(CLUSTER_CENTERS)

    for cluster_idx, (cx, cy) in enumerate(CLUSTER_CENTERS):
        if cluster_idx == len(CLUSTER_CENTERS) - 1:
            size = count - len(cells)
        else:
            size = max(0, per_cluster + int(np.floor(rng.random() * 200 - 100)))
            size = min(size, count - len(cells))

        spread_x = rng.normal(0, 6 + rng.random(size) * 3)
        spread_y = rng.normal(0, 6 + rng.random(size) * 3)
        n_count = np.floor(5000 + rng.random(size) * 15000).astype(int)
        n_feature = np.floor(1500 + rng.random(size) * 3500).astype(int)
        percent_mt = np.round(2 + rng.random(size) * 6, 2)
        samples = rng.integers(1, 4, size)

        for i in range(size):
            cells.append(Cell(
                id=f"cell_{len(cells)}",
                x=float(cx + spread_x[i]),
                y=float(cy + spread_y[i]),
                cluster=cluster_idx,
                metadata={
                    "nCount_RNA": NumberValue(float(n_count[i])),
                    "nFeature_RNA": NumberValue(float(n_feature[i])),
                    "percent_mt": NumberValue(float(percent_mt[i])),
                    "sample": StringValue(f"Sample_{samples[i]}"),
                    "cell_type": StringValue(CLUSTER_NAMES[cluster_idx]),
                },
            ))
    return cells


def _generate_differential_expression(rng: np.random.Generator) -> List[DifferentialExpression]:
    records: List[DifferentialExpression] = []

    for cluster, genes in MARKER_GENES.items():
        for idx, gene in enumerate(genes):
            records.append(DifferentialExpression(
                gene=gene,
                cluster=f"Cl_{cluster}",
                log_fc=round(2.5 - idx * 0.15 + rng.random() * 0.3, 2),
                p_value=10 ** -(280 + rng.random() * 20),
                p_adj=10 ** -(250 + rng.random() * 20),
            ))

        # Weaker markers
        for _ in range(3):
            gene = ALL_GENES[int(rng.integers(len(ALL_GENES)))]
            if gene not in genes:
                records.append(DifferentialExpression(
                    gene=gene,
                    cluster=f"Cl_{cluster}",
                    log_fc=round(0.5 + rng.random() * 0.8, 2),
                    p_value=10 ** -(50 + rng.random() * 100),
                    p_adj=10 ** -(40 + rng.random() * 80),
                ))

    return sorted(records, key=lambda r: r.log_fc, reverse=True)


def generate_demo_dataset(
    cell_count: int = 15000,
    seed: Optional[int] = None,
) -> SingleCellDataset:
    """
    Generate the demo developmental-heart dataset.

    Args:
        cell_count: Total number of cells
        seed: Seed for reproducible layouts

    Returns:
        A dataset without embedded expression (values are synthesized on demand)
    """
    rng = np.random.default_rng(seed)
    cells = _generate_cells(cell_count, rng)
    clusters = [
        ClusterInfo(id=idx, name=name, cell_count=0, color=cluster_color_css(idx))
        for idx, name in enumerate(CLUSTER_NAMES)
    ]

    dataset = SingleCellDataset(
        metadata=DatasetMetadata(
            name="Developmental Heart (Demo)",
            description=(
                "Single-cell RNA-seq data from developing human heart tissue. "
                "This is demo data for visualization purposes."
            ),
            cell_count=len(cells),
            gene_count=len(ALL_GENES),
            cluster_count=len(clusters),
            organism="Homo sapiens",
            tissue="Heart",
            source="Demo data",
        ),
        cells=cells,
        genes=sorted(ALL_GENES),
        clusters=clusters,
        differential_expression=_generate_differential_expression(rng),
        annotation_options=["cell_type", "sample"],
    )
    dataset.refresh_counts()
    return dataset
