# -*- coding: utf-8 -*-
# cardsheet/layout_calculator.py
import logging
from dataclasses import dataclass, replace
from typing import List, Tuple

from .exceptions import LayoutCalculationError
from .models import SheetLayout, SlotPlacement

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PageGrid:
    rows: int
    margin: float
    gap_x: float
    gap_y: float
    loose: bool = False


def _gap(span: float, margin: float, cell: float, count: int) -> float:
    if count <= 1:
        return 0.0
    return (span - 2 * margin - count * cell) / (count - 1)


class SheetPaginator:
    """Places slot indices into a fixed grid, page by page"""

    def __init__(self, layout: SheetLayout, label_width_mm: float, label_height_mm: float):
        self.layout = layout
        self.cell_width = label_width_mm
        self.cell_height = label_height_mm

        if layout.columns < 1 or layout.rows_per_page < 1:
            raise LayoutCalculationError(
                f"Grid must have at least one cell: {layout.columns}x{layout.rows_per_page}")
        if layout.loose_rows_per_page is not None and not 1 <= layout.loose_rows_per_page <= layout.rows_per_page:
            raise LayoutCalculationError(
                f"Loose row count {layout.loose_rows_per_page} must be between 1 and {layout.rows_per_page}")

        self.dense_grid = self._grid(layout.rows_per_page, layout.margin_mm, loose=False)
        self.loose_grid = None
        if layout.loose_rows_per_page is not None:
            margin = layout.loose_margin_mm if layout.loose_margin_mm is not None else layout.margin_mm
            self.loose_grid = self._grid(layout.loose_rows_per_page, margin, loose=True)

        logger.debug(f"Paginator: {layout.columns}x{layout.rows_per_page} cells of "
                     f"{label_width_mm:.2f}x{label_height_mm:.2f} mm, "
                     f"gap ({self.dense_grid.gap_x:.2f}, {self.dense_grid.gap_y:.2f})")

    def _grid(self, rows: int, margin: float, loose: bool) -> PageGrid:
        gap_x = _gap(self.layout.page_width_mm, margin, self.cell_width, self.layout.columns)
        gap_y = _gap(self.layout.page_height_mm, margin, self.cell_height, rows)

        fits_x = 2 * margin + self.layout.columns * self.cell_width <= self.layout.page_width_mm + 1e-9
        fits_y = 2 * margin + rows * self.cell_height <= self.layout.page_height_mm + 1e-9
        if gap_x < 0 or gap_y < 0 or not fits_x or not fits_y:
            raise LayoutCalculationError(
                f"{self.layout.columns}x{rows} cards of {self.cell_width:.2f}x{self.cell_height:.2f} mm "
                f"with {margin} mm margin do not fit a "
                f"{self.layout.page_width_mm}x{self.layout.page_height_mm} mm page")
        return PageGrid(rows=rows, margin=margin, gap_x=gap_x, gap_y=gap_y, loose=loose)

    def page_count(self, total_slots: int) -> int:
        capacity = self.layout.capacity
        return (max(0, total_slots) + capacity - 1) // capacity

    def page_slots(self, page_index: int, total_slots: int) -> range:
        start = page_index * self.layout.capacity
        return range(start, min(start + self.layout.capacity, total_slots))

    def page_grid(self, page_index: int, total_slots: int) -> PageGrid:
        """Pick the dense or loose grid once for the whole page"""
        span = len(self.page_slots(page_index, total_slots))
        if self.loose_grid is not None and 0 < span <= self.layout.loose_capacity:
            return self.loose_grid
        return self.dense_grid

    def locate(self, index: int) -> Tuple[int, int, int]:
        """(page, column, row) of a slot index"""
        capacity = self.layout.capacity
        page = index // capacity
        position = index % capacity
        return page, position % self.layout.columns, position // self.layout.columns

    def layout_for(self, total_slots: int) -> List[SlotPlacement]:
        """Physical placements in mm, origin at the bottom-left of the page"""
        placements = []
        page_height = self.layout.page_height_mm
        for page in range(self.page_count(total_slots)):
            grid = self.page_grid(page, total_slots)
            for index in self.page_slots(page, total_slots):
                _, column, row = self.locate(index)
                x = grid.margin + column * (self.cell_width + grid.gap_x)
                y = page_height - grid.margin - self.cell_height - row * (self.cell_height + grid.gap_y)
                placements.append(SlotPlacement(
                    index=index, page=page, column=column, row=row,
                    x=x, y=y, width=self.cell_width, height=self.cell_height,
                    gap_x=grid.gap_x, gap_y=grid.gap_y,
                ))
        return placements

    def preview_layout(self, total_slots: int) -> List[SlotPlacement]:
        """Same placement as fractions of the page, origin at the top-left"""
        page_width = self.layout.page_width_mm
        page_height = self.layout.page_height_mm
        placements = []
        for page in range(self.page_count(total_slots)):
            grid = self.page_grid(page, total_slots)
            for index in self.page_slots(page, total_slots):
                _, column, row = self.locate(index)
                x = grid.margin + column * (self.cell_width + grid.gap_x)
                y = grid.margin + row * (self.cell_height + grid.gap_y)
                placements.append(SlotPlacement(
                    index=index, page=page, column=column, row=row,
                    x=x / page_width, y=y / page_height,
                    width=self.cell_width / page_width, height=self.cell_height / page_height,
                    gap_x=grid.gap_x / page_width, gap_y=grid.gap_y / page_height,
                ))
        return placements

    @staticmethod
    def scale_to_container(placement: SlotPlacement, width: float, height: float) -> SlotPlacement:
        return replace(
            placement,
            x=placement.x * width, y=placement.y * height,
            width=placement.width * width, height=placement.height * height,
            gap_x=placement.gap_x * width, gap_y=placement.gap_y * height,
        )

    def get_preview_data(self, total_slots: int) -> dict:
        return {
            'columns': self.layout.columns,
            'rows': self.layout.rows_per_page,
            'cards_per_sheet': self.layout.capacity,
            'pages': self.page_count(total_slots),
            'card_width': self.cell_width,
            'card_height': self.cell_height,
            'page_width': self.layout.page_width_mm,
            'page_height': self.layout.page_height_mm,
            'gap_x': self.dense_grid.gap_x,
            'gap_y': self.dense_grid.gap_y,
        }
