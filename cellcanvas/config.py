"""
Configuration management for CellCanvas.

This module defines the Config dataclass that holds all application settings.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

SUPPORTED_SUFFIXES = (".json", ".h5ad")


@dataclass
class Config:
    """
    Application configuration.

    Attributes:
        data_path: Path to a .json export or .h5ad file (None for the demo dataset)
        host: Host address to bind the server
        port: Port number for the server
        debug: Enable debug mode with hot reloading
        expression_cache_size: Maximum number of genes to cache in memory
        canvas_width: Scatter canvas width in pixels
        canvas_height: Scatter canvas height in pixels
        seed: Seed for synthesized expression (None for non-reproducible values)
        demo_cells: Number of cells in the demo dataset
        embedding_key: obsm key used when importing .h5ad files
        cluster_key: obs column used as clusters when importing .h5ad files
    """

    data_path: Optional[Path] = None
    host: str = "127.0.0.1"
    port: int = 8050
    debug: bool = False

    # Performance tuning
    expression_cache_size: int = 100  # Max genes to cache in LRU cache

    # Canvas
    canvas_width: int = 900
    canvas_height: int = 650

    # Data
    seed: Optional[int] = None
    demo_cells: int = 15000
    embedding_key: str = "X_umap"
    cluster_key: str = "leiden"

    def __post_init__(self):
        """Validate and normalize paths."""
        if self.data_path is not None:
            self.data_path = Path(self.data_path).resolve()

            if not self.data_path.exists():
                raise FileNotFoundError(f"Data file not found: {self.data_path}")

            if self.data_path.suffix not in SUPPORTED_SUFFIXES:
                raise ValueError(f"Data file must be .json or .h5ad format: {self.data_path}")

        if self.canvas_width <= 0 or self.canvas_height <= 0:
            raise ValueError("Canvas size must be positive")

        if self.seed is not None and self.seed < 0:
            raise ValueError("Seed must be non-negative")

    def to_dict(self) -> dict:
        """Convert config to dictionary for serialization."""
        return {
            "data_path": str(self.data_path) if self.data_path else None,
            "host": self.host,
            "port": self.port,
            "debug": self.debug,
            "expression_cache_size": self.expression_cache_size,
            "canvas_width": self.canvas_width,
            "canvas_height": self.canvas_height,
            "seed": self.seed,
            "demo_cells": self.demo_cells,
            "embedding_key": self.embedding_key,
            "cluster_key": self.cluster_key,
        }
