"""
Differential expression table for the sidebar.

Clicking a gene selects it for expression coloring.
"""

import dash_mantine_components as dmc
import pandas as pd


def create_marker_table(markers: pd.DataFrame) -> dmc.Stack:
    """
    Create the top-markers table.

    Args:
        markers: Frame with gene, cluster, logFC, pValue and pAdj columns

    Returns:
        Stack with a title and a compact table
    """
    if markers.empty:
        body = dmc.Text("No differential expression results", size="xs", c="dimmed")
    else:
        rows = [
            dmc.TableTr([
                dmc.TableTd(
                    dmc.Button(
                        row.gene,
                        id={"type": "de-gene", "gene": row.gene},
                        variant="subtle",
                        size="compact-xs",
                    )
                ),
                dmc.TableTd(dmc.Text(str(row.cluster), size="xs", truncate=True)),
                dmc.TableTd(dmc.Text(f"{row.logFC:.2f}", size="xs")),
                dmc.TableTd(dmc.Text(f"{row.pAdj:.1e}", size="xs")),
            ])
            for row in markers.itertuples(index=False)
        ]
        body = dmc.Table(
            [
                dmc.TableThead(dmc.TableTr([
                    dmc.TableTh("Gene"),
                    dmc.TableTh("Cluster"),
                    dmc.TableTh("logFC"),
                    dmc.TableTh("p.adj"),
                ])),
                dmc.TableTbody(rows),
            ],
            highlightOnHover=True,
            verticalSpacing=2,
            fz="xs",
        )

    return dmc.Stack([
        dmc.Text("Top Markers", fw=600, size="sm"),
        dmc.ScrollArea(body, h=260),
    ], gap="xs")
