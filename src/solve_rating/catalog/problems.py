"""Problem catalog boundary."""

from collections.abc import Iterable
from typing import Protocol

from solve_rating.models.problem import Problem, Solve


class ProblemCatalog(Protocol):
    """Read access to catalog problems and per-user solve history."""

    async def get_problem(self, slug: str) -> Problem | None: ...

    async def get_all_problems(self) -> list[Problem]: ...

    async def get_all_solves(self, username: str) -> list[Solve]: ...


class StaticCatalog:
    """Catalog backed by in-memory problems and solves."""

    def __init__(
        self,
        problems: Iterable[Problem] = (),
        solves: dict[str, list[Solve]] | None = None,
    ):
        self._problems = {p.slug: p for p in problems}
        self._solves = solves or {}

    async def get_problem(self, slug: str) -> Problem | None:
        return self._problems.get(slug)

    async def get_all_problems(self) -> list[Problem]:
        return list(self._problems.values())

    async def get_all_solves(self, username: str) -> list[Solve]:
        return list(self._solves.get(username, []))

    def add_solves(self, username: str, solves: Iterable[Solve]) -> None:
        self._solves.setdefault(username, []).extend(solves)


def problem_map(problems: Iterable[Problem]) -> dict[str, Problem]:
    return {p.slug: p for p in problems}
