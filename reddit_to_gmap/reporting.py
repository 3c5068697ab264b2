"""Output writing helpers."""
from __future__ import annotations

import csv
import os
import tempfile
from contextlib import contextmanager
from datetime import date
from typing import Iterable, Iterator, List, Optional, TextIO

from .models import ResolvedRestaurant

CSV_HEADER = ["Name", "Type", "Map URL", "Rating", "Source URL", "Latitude", "Longitude"]


def ensure_dir(path: str) -> None:
    os.makedirs(path, exist_ok=True)


def _fsync_dir(path: str) -> None:
    try:
        dir_fd = os.open(path, os.O_DIRECTORY)
    except OSError:
        return
    try:
        os.fsync(dir_fd)
    except OSError:
        pass
    finally:
        os.close(dir_fd)


@contextmanager
def atomic_writer(
    path: str,
    mode: str = "w",
    encoding: str = "utf-8",
    newline: Optional[str] = None,
) -> Iterator[TextIO]:
    dir_path = os.path.dirname(path) or "."
    base = os.path.basename(path)
    fd, tmp_path = tempfile.mkstemp(prefix=f".{base}.", suffix=".tmp", dir=dir_path)
    try:
        with os.fdopen(fd, mode, encoding=encoding, newline=newline) as f:
            yield f
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
        _fsync_dir(dir_path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def build_csv_filename(subreddit: str, time_range: str, today: Optional[date] = None) -> str:
    day = today or date.today()
    return f"{subreddit}_{day.strftime('%Y%m%d')}_{time_range}.csv"


def _format_rating(restaurant: ResolvedRestaurant) -> str:
    rating = restaurant.place.rating
    count = restaurant.place.user_rating_count
    if rating is None:
        return ""
    if count is None:
        return f"{rating:.1f}"
    return f"{rating:.1f} ({count} reviews)"


def _format_coord(value: Optional[float]) -> str:
    if value is None:
        return ""
    return f"{value:.6f}"


def build_csv_row(rank: int, restaurant: ResolvedRestaurant) -> List[str]:
    return [
        f"{restaurant.display_name} (#{rank}, {restaurant.upvotes} upvotes)",
        restaurant.place.category or "",
        restaurant.google_maps_url,
        _format_rating(restaurant),
        restaurant.reddit_url,
        _format_coord(restaurant.place.latitude),
        _format_coord(restaurant.place.longitude),
    ]


def write_restaurants_csv(path: str, restaurants: Iterable[ResolvedRestaurant]) -> int:
    """Write ranked restaurants to ``path``; rows are numbered from 1 in input order.

    Returns the number of data rows written.
    """
    ensure_dir(os.path.dirname(path) or ".")
    count = 0
    with atomic_writer(path, mode="w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f, lineterminator="\n")
        writer.writerow(CSV_HEADER)
        for rank, restaurant in enumerate(restaurants, start=1):
            writer.writerow(build_csv_row(rank, restaurant))
            count += 1
    return count
