from __future__ import annotations

import enum
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime

from repodash.schemas.repos import RepositoryOut

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


class Visibility(enum.StrEnum):
    all = "all"
    public = "public"
    private = "private"


class SortField(enum.StrEnum):
    name = "name"
    stars = "stars"
    updated = "updated"


class SortOrder(enum.StrEnum):
    asc = "asc"
    desc = "desc"


def _parse_timestamp(value: str | None) -> datetime:
    if not value:
        return _EPOCH
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return _EPOCH
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def matches_search(repo: RepositoryOut, search: str) -> bool:
    needle = search.strip().casefold()
    if not needle:
        return True
    if needle in repo.name.casefold():
        return True
    return bool(repo.description) and needle in repo.description.casefold()


def matches_visibility(repo: RepositoryOut, visibility: Visibility) -> bool:
    if visibility is Visibility.private:
        return repo.private
    if visibility is Visibility.public:
        return not repo.private
    return True


def filter_and_sort(
    repos: Iterable[RepositoryOut],
    *,
    search: str = "",
    visibility: Visibility | str = Visibility.all,
    sort_field: SortField | str = SortField.updated,
    sort_order: SortOrder | str = SortOrder.desc,
) -> list[RepositoryOut]:
    """Return the repositories the dashboard shows, in display order.

    Pure: the input is never mutated. The sort is stable, so repositories
    with equal keys keep their input order in both directions.
    """
    visibility = Visibility(visibility)
    sort_field = SortField(sort_field)
    sort_order = SortOrder(sort_order)

    selected = [
        r for r in repos if matches_search(r, search) and matches_visibility(r, visibility)
    ]

    if sort_field is SortField.name:
        key = lambda r: r.name.casefold()  # noqa: E731
    elif sort_field is SortField.stars:
        key = lambda r: r.stars or 0  # noqa: E731
    else:
        key = lambda r: _parse_timestamp(r.updated_at)  # noqa: E731

    return sorted(selected, key=key, reverse=sort_order is SortOrder.desc)


def toggle_order(order: SortOrder | str) -> SortOrder:
    return SortOrder.asc if SortOrder(order) is SortOrder.desc else SortOrder.desc


def apply_auto_review(
    repos: Sequence[RepositoryOut], *, repo_id: str, auto_review: bool
) -> list[RepositoryOut]:
    """Reflect a toggle result locally until the next list refresh."""
    return [
        r.model_copy(update={"auto_review": auto_review}) if r.id == repo_id else r for r in repos
    ]
