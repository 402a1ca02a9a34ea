"""
CSV adapter: read ``latitude,longitude[,...]`` rows and write the retained ones.

Every cell is read as a string so that retained rows are written back exactly
as they were read, extra columns included. The first row is treated as a
header when its first cell does not parse as a number.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Union

import pandas as pd

from ..spatial.distance import Point


logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class CSVReadError(ValueError):
    """Raised when an input CSV cannot be parsed."""

    def __init__(self, path: PathLike, reason: str):
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


@dataclass
class PointTable:
    """Parsed CSV: raw records plus the points clustered from them."""

    rows: pd.DataFrame
    """Data rows (header excluded), every cell a string."""

    header: Optional[List[str]] = None

    points: List[Point] = field(default_factory=list)

    row_of_point: List[int] = field(default_factory=list)
    """Position in ``rows`` of each point; rows that did not parse are skipped."""

    @property
    def has_header(self) -> bool:
        return self.header is not None

    def records_for(self, indices: Iterable[int]) -> pd.DataFrame:
        """Data rows for the given point indices, in input order."""
        positions = [self.row_of_point[i] for i in sorted(set(indices))]
        return self.rows.iloc[positions]


def _parse_float(value: str) -> Optional[float]:
    # Plain numeric literals only: no padding, no digit separators.
    if not isinstance(value, str) or value != value.strip() or "_" in value:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def read_points_csv(path: PathLike) -> PointTable:
    """
    Read points from a ``latitude,longitude`` CSV file.

    Rows with fewer than two cells or non-numeric coordinates are skipped.
    Coordinates with surrounding whitespace or digit separators (``" 40.7"``,
    ``"4_0.7"``) count as non-numeric.

    Raises:
        CSVReadError: If the file is missing, unreadable or malformed
    """
    try:
        raw = pd.read_csv(
            path,
            header=None,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
        )
    except pd.errors.EmptyDataError:
        return PointTable(rows=pd.DataFrame())
    except FileNotFoundError as exc:
        raise CSVReadError(path, "file not found") from exc
    except OSError as exc:
        raise CSVReadError(path, exc.strerror or str(exc)) from exc
    except (pd.errors.ParserError, UnicodeDecodeError) as exc:
        raise CSVReadError(path, str(exc)) from exc

    raw = raw.fillna("")
    header = None
    if len(raw) and _parse_float(raw.iat[0, 0]) is None:
        header = raw.iloc[0].tolist()
        raw = raw.iloc[1:]
    rows = raw.reset_index(drop=True)

    points: List[Point] = []
    row_of_point: List[int] = []
    if rows.shape[1] >= 2:
        for pos, (lat_s, lng_s) in enumerate(zip(rows[0], rows[1])):
            lat, lng = _parse_float(lat_s), _parse_float(lng_s)
            if lat is None or lng is None:
                continue
            points.append(Point(lng=lng, lat=lat))
            row_of_point.append(pos)

    skipped = len(rows) - len(points)
    if skipped:
        logger.debug("Skipped %d unparseable row(s) in %s", skipped, path)
    logger.debug("Read %d points from %s (header=%s)", len(points), path, header is not None)

    return PointTable(rows=rows, header=header, points=points, row_of_point=row_of_point)


def write_filtered_csv(path: PathLike, table: PointTable, indices: Iterable[int]) -> None:
    """Write the header (if any) and the retained rows, all columns kept."""
    records = table.records_for(indices)
    if table.has_header:
        records = records.set_axis(table.header, axis=1)
    records.to_csv(path, header=table.has_header, index=False)
    logger.debug("Wrote %d row(s) to %s", len(records), path)


def format_filtered_lines(table: PointTable, indices: Iterable[int]) -> List[str]:
    """``latitude,longitude`` lines for the retained rows, as read."""
    records = table.records_for(indices)
    if records.empty:
        return []
    return [f"{lat},{lng}" for lat, lng in zip(records[0], records[1])]
