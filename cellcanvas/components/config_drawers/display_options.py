"""
Configuration drawer for scatter display options.
"""

from typing import Any, Dict, List, Optional

import dash_mantine_components as dmc
from dash import html
from dash_iconify import DashIconify

from cellcanvas.render.palettes import PALETTE_LABELS, get_palette_gradient_css
from cellcanvas.state import VisualizationSettings


def create_palette_legend(palette: str, bounds: Optional[tuple] = None) -> html.Div:
    """Gradient bar for the active palette, with min/max labels when known."""
    labels = []
    if bounds is not None:
        labels = [
            dmc.Group([
                dmc.Text(f"{bounds[0]:.2f}", size="xs", c="dimmed"),
                dmc.Text(f"{bounds[1]:.2f}", size="xs", c="dimmed"),
            ], justify="space-between"),
        ]
    return html.Div([
        html.Div(style={
            "background": get_palette_gradient_css(palette),
            "height": "12px",
            "borderRadius": "4px",
        }),
        *labels,
    ])


def create_display_options_drawer(
    settings: VisualizationSettings,
    annotation_options: List[str],
) -> dmc.Drawer:
    """
    Create a configuration drawer for display settings.

    Args:
        settings: Current visualization settings
        annotation_options: Metadata keys usable for categorical coloring

    Returns:
        Drawer component with display settings
    """
    return dmc.Drawer(
        id="display-options-drawer",
        title=dmc.Group([
            DashIconify(icon="tabler:adjustments", width=20),
            dmc.Text("Display Options", fw=500),
        ]),
        position="right",
        size="md",
        children=[
            dmc.Stack([
                dmc.Divider(label="Points", labelPosition="center"),

                # Point size slider
                dmc.Stack([
                    dmc.Text("Point Size", size="sm", fw=500),
                    dmc.Slider(
                        id="opt-point-size",
                        value=settings.point_size,
                        min=0.5,
                        max=5,
                        step=0.5,
                        marks=[
                            {"value": 0.5, "label": "0.5"},
                            {"value": 2.5, "label": "2.5"},
                            {"value": 5, "label": "5"},
                        ],
                    ),
                ], gap="xs"),

                # Opacity slider
                dmc.Stack([
                    dmc.Text("Opacity", size="sm", fw=500),
                    dmc.Slider(
                        id="opt-opacity",
                        value=settings.opacity,
                        min=0.1,
                        max=1.0,
                        step=0.1,
                        marks=[
                            {"value": 0.1, "label": "0.1"},
                            {"value": 0.5, "label": "0.5"},
                            {"value": 1.0, "label": "1.0"},
                        ],
                    ),
                ], gap="xs"),

                dmc.Switch(id="opt-show-clusters", label="Color by cluster", checked=settings.show_clusters),
                dmc.Switch(id="opt-show-labels", label="Show cluster labels", checked=settings.show_labels),

                dmc.Select(
                    id="opt-annotation",
                    label="Annotation",
                    description="Color cells by a categorical metadata field",
                    data=[{"value": key, "label": key} for key in annotation_options],
                    value=settings.annotation_key,
                    clearable=True,
                    leftSection=DashIconify(icon="tabler:table", width=16),
                ),

                dmc.Divider(label="Expression", labelPosition="center"),

                dmc.Select(
                    id="opt-palette",
                    label="Color Palette",
                    data=[{"value": k, "label": v} for k, v in PALETTE_LABELS.items()],
                    value=settings.palette,
                    allowDeselect=False,
                ),
                html.Div(id="palette-legend", children=create_palette_legend(settings.palette)),

                dmc.Stack([
                    dmc.Text("Expression Scale", size="sm", fw=500),
                    dmc.Slider(
                        id="opt-expression-scale",
                        value=settings.expression_scale,
                        min=0.1,
                        max=3.0,
                        step=0.1,
                        marks=[
                            {"value": 0.1, "label": "0.1"},
                            {"value": 1.0, "label": "1.0"},
                            {"value": 3.0, "label": "3.0"},
                        ],
                    ),
                ], gap="xs"),

                dmc.Switch(
                    id="opt-percentile-clipping",
                    label="Percentile clipping",
                    checked=settings.use_percentile_clipping,
                ),
                dmc.Stack([
                    dmc.Text("Percentile Range", size="sm", fw=500),
                    dmc.RangeSlider(
                        id="opt-percentile-range",
                        value=[settings.percentile_low, settings.percentile_high],
                        min=0,
                        max=100,
                        step=1,
                        minRange=1,
                        marks=[
                            {"value": 0, "label": "0"},
                            {"value": 50, "label": "50"},
                            {"value": 100, "label": "100"},
                        ],
                    ),
                ], gap="xs"),

                dmc.Switch(
                    id="opt-show-averaged",
                    label="Show averaged expression of gene set",
                    checked=settings.show_averaged_expression,
                ),
            ], gap="md", p="md"),
        ],
        opened=False,
    )


def get_settings_from_inputs(
    point_size: float,
    opacity: float,
    show_clusters: bool,
    show_labels: bool,
    annotation_key: Optional[str],
    palette: str,
    expression_scale: float,
    use_percentile_clipping: bool,
    percentile_range: Optional[List[float]],
    show_averaged: bool,
) -> Dict[str, Any]:
    """
    Collect settings changes from drawer input values.

    Returns:
        Keyword arguments for ``Explorer.update_settings``
    """
    changes: Dict[str, Any] = {
        "point_size": point_size,
        "opacity": opacity,
        "show_clusters": bool(show_clusters),
        "show_labels": bool(show_labels),
        "annotation_key": annotation_key or None,
        "palette": palette,
        "expression_scale": expression_scale,
        "use_percentile_clipping": bool(use_percentile_clipping),
        "show_averaged_expression": bool(show_averaged),
    }
    if percentile_range and len(percentile_range) == 2:
        changes["percentile_low"] = float(percentile_range[0])
        changes["percentile_high"] = float(percentile_range[1])
    return changes
