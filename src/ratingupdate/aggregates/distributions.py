"""
Population distributions: rating histogram, floors, character popularity
and daily activity.

Ratings are bucketed on the display scale. Popularity counts game sides
(each game adds one side per participant) over the recent analytics window,
both overall and inside fixed rating brackets, and reports each bracket's
share against the overall share as a signed overrepresentation delta:

    delta = (bracket_share - global_share) / global_share

Empty denominators produce None instead of a rate.
"""

from __future__ import annotations

import math
from typing import NamedTuple

from ratingupdate.aggregates.inputs import RatingRow, SnapshotRow
from ratingupdate.aggregates.rankings import is_established
from ratingupdate.rating.glicko import to_display

SECONDS_PER_DAY = 86400


class HistogramBucket(NamedTuple):
    bucket: int
    min_rating: float
    max_rating: float
    player_count: int
    player_count_cum: int


class FloorRow(NamedTuple):
    floor: int
    player_count: int
    game_count: int


class PopularityRow(NamedTuple):
    char_id: int
    popularity: float | None


class BracketPopularityRow(NamedTuple):
    rating_bracket: int
    char_id: int
    rating_min: float
    rating_max: float | None
    popularity: float | None
    delta: float | None


class ActivityRow(NamedTuple):
    day: int
    player_count: int


def rating_histogram(
    ratings: list[RatingRow],
    primaries: dict[int, int],
    low_deviation: float,
    width: float,
) -> list[HistogramBucket]:
    """
    Histogram of players by the display rating of their primary character.

    Players whose primary rating is not established are left out. Buckets
    are contiguous from the lowest to the highest occupied one, and
    player_count_cum counts every player at or below the bucket.
    """
    counts: dict[int, int] = {}
    for row in ratings:
        if primaries.get(row.id) != row.char_id or not is_established(row, low_deviation):
            continue
        bucket = math.floor(to_display(row.value) / width)
        counts[bucket] = counts.get(bucket, 0) + 1

    if not counts:
        return []

    buckets: list[HistogramBucket] = []
    running = 0
    for bucket in range(min(counts), max(counts) + 1):
        count = counts.get(bucket, 0)
        running += count
        buckets.append(
            HistogramBucket(
                bucket=bucket,
                min_rating=bucket * width,
                max_rating=(bucket + 1) * width,
                player_count=count,
                player_count_cum=running,
            )
        )
    return buckets


def floor_distribution(snapshots: list[SnapshotRow]) -> list[FloorRow]:
    """Players per floor of their most recent game, and games per floor."""
    latest_floor: dict[int, int] = {}
    game_counts: dict[int, int] = {}
    for snap in snapshots:
        latest_floor[snap.id_a] = snap.game_floor
        latest_floor[snap.id_b] = snap.game_floor
        game_counts[snap.game_floor] = game_counts.get(snap.game_floor, 0) + 1

    player_counts: dict[int, int] = {}
    for floor in latest_floor.values():
        player_counts[floor] = player_counts.get(floor, 0) + 1

    return [
        FloorRow(floor, player_counts.get(floor, 0), game_counts.get(floor, 0))
        for floor in sorted(set(player_counts) | set(game_counts))
    ]


def bracket_bounds(bracket: int, start: float, width: float, count: int) -> tuple[float, float | None]:
    """
    Display-rating bounds of a popularity bracket.

    The first bracket reaches down to 0 and the last one is open ended.

    Examples:
        bracket_bounds(0, 1000, 100, 20)   # → (0.0, 1100.0)
        bracket_bounds(3, 1000, 100, 20)   # → (1300.0, 1400.0)
        bracket_bounds(19, 1000, 100, 20)  # → (2900.0, None)
    """
    rating_min = 0.0 if bracket == 0 else start + bracket * width
    rating_max = None if bracket == count - 1 else start + (bracket + 1) * width
    return rating_min, rating_max


def bracket_for(display_rating: float, start: float, width: float, count: int) -> int:
    bracket = math.floor((display_rating - start) / width)
    return min(max(bracket, 0), count - 1)


def character_popularity(
    snapshots: list[SnapshotRow],
    character_count: int,
    bracket_start: float,
    bracket_width: float,
    bracket_count: int,
) -> tuple[list[PopularityRow], list[BracketPopularityRow]]:
    """Overall and per-bracket character shares of game sides."""
    global_counts = [0] * character_count
    bracket_counts = [[0] * character_count for _ in range(bracket_count)]

    for snap in snapshots:
        for char_id, value in ((snap.char_a, snap.value_a), (snap.char_b, snap.value_b)):
            if not 0 <= char_id < character_count:
                continue
            bracket = bracket_for(to_display(value), bracket_start, bracket_width, bracket_count)
            global_counts[char_id] += 1
            bracket_counts[bracket][char_id] += 1

    global_total = sum(global_counts)
    global_rows = [
        PopularityRow(char_id, count / global_total if global_total else None)
        for char_id, count in enumerate(global_counts)
    ]

    bracket_rows: list[BracketPopularityRow] = []
    for bracket, counts in enumerate(bracket_counts):
        rating_min, rating_max = bracket_bounds(bracket, bracket_start, bracket_width, bracket_count)
        total = sum(counts)
        for char_id, count in enumerate(counts):
            share = count / total if total else None
            baseline = global_rows[char_id].popularity
            delta = None
            if share is not None and baseline:
                delta = (share - baseline) / baseline
            bracket_rows.append(
                BracketPopularityRow(bracket, char_id, rating_min, rating_max, share, delta)
            )

    return global_rows, bracket_rows


def daily_activity(snapshots: list[SnapshotRow], period_end: int, days: int) -> list[ActivityRow]:
    """Distinct players per UTC day for the `days` days ending with period_end's day."""
    last_day = period_end // SECONDS_PER_DAY * SECONDS_PER_DAY
    first_day = last_day - (days - 1) * SECONDS_PER_DAY

    players: dict[int, set[int]] = {
        first_day + i * SECONDS_PER_DAY: set() for i in range(days)
    }
    for snap in snapshots:
        if snap.timestamp < first_day or snap.timestamp > period_end:
            continue
        day = snap.timestamp // SECONDS_PER_DAY * SECONDS_PER_DAY
        players[day].add(snap.id_a)
        players[day].add(snap.id_b)

    return [ActivityRow(day, len(ids)) for day, ids in sorted(players.items())]
