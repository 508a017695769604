
from typing import Dict, List, Optional, Sequence

import structlog

from .domain import (
    UNASSIGNED,
    ColumnBoundary,
    ColumnLayout,
    Row,
    RowCells,
    TextItem,
)
from .templates import LayoutTemplate

logger = structlog.get_logger()


def detect_column_layout(items: Sequence[TextItem], template: LayoutTemplate) -> Optional[ColumnLayout]:
    """
    Locate the header row and derive one column boundary per found label.

    A label matches the first item whose trimmed, lower-cased text starts with
    it. The header y is taken from the first label found, in template order.
    Returns None when fewer than (len(headers) - 2) labels are found.
    """
    columns: List[ColumnBoundary] = []
    header_y: Optional[float] = None

    for label in template.headers:
        needle = label.lower()
        found = next(
            (item for item in items if item.text.strip().lower().startswith(needle)),
            None,
        )
        if found is None:
            logger.debug("Header not found", header=label)
            continue
        columns.append(ColumnBoundary(name=label, x=found.x, width=found.width))
        if header_y is None:
            header_y = found.y

    if len(columns) < template.min_headers_required or header_y is None:
        logger.debug(
            "Not enough headers to determine table structure",
            found=len(columns),
            required=template.min_headers_required,
        )
        return None

    return ColumnLayout(header_y=header_y, columns=tuple(columns))


def group_into_rows(items: Sequence[TextItem], header_y: float, row_tolerance: float) -> List[Row]:
    """
    Cluster the items strictly below the header into rows.

    An item joins the first cluster whose anchor y lies within the tolerance,
    otherwise it opens a new cluster anchored at its own y. Items are ordered
    by x inside a row and rows are ordered top to bottom (descending y).
    """
    clusters: List[List[TextItem]] = []
    anchors: List[float] = []

    for item in items:
        if item.y >= header_y or not item.text.strip():
            continue
        for index, anchor in enumerate(anchors):
            if abs(anchor - item.y) < row_tolerance:
                clusters[index].append(item)
                break
        else:
            anchors.append(item.y)
            clusters.append([item])

    rows = [
        Row(y=anchor, items=tuple(sorted(cluster, key=lambda i: i.x)))
        for anchor, cluster in zip(anchors, clusters)
    ]
    rows.sort(key=lambda r: r.y, reverse=True)
    return rows


def assign_to_columns(row: Row, row_index: int, layout: ColumnLayout, column_tolerance: float) -> RowCells:
    """Put every item of the row into exactly one column or the unassigned bucket."""
    buckets: Dict[str, List[str]] = {UNASSIGNED: []}
    for item in row.items:
        column = layout.column_for(item.x, column_tolerance)
        buckets.setdefault(column, []).append(item.text.strip())

    return RowCells(
        row_index=row_index,
        cells={name: tuple(tokens) for name, tokens in buckets.items()},
        raw_text=row.raw_text,
    )


def description_text(cells: RowCells, template: LayoutTemplate) -> str:
    """Description columns first (template order), then the unassigned text."""
    parts = [cells.text(name) for name in template.description_columns]
    parts.append(cells.text(UNASSIGNED))
    return " ".join(p for p in parts if p).strip()
