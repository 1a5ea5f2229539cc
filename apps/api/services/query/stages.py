"""Typed read-pipeline stages and the immutable pipeline builder."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Literal, Mapping, Optional, Sequence, Tuple, Union


SortDirection = Literal["asc", "desc"]
Document = Dict[str, Any]

DEFAULT_SORT_FIELD = "created_at"
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


def resolve_path(value: Any, path: str) -> Any:
    """Follow a dotted path; lists are traversed element-wise and flattened."""
    for part in path.split("."):
        if isinstance(value, list):
            collected: List[Any] = []
            for item in value:
                child = item.get(part) if isinstance(item, dict) else None
                if isinstance(child, list):
                    collected.extend(child)
                elif child is not None:
                    collected.append(child)
            value = collected
        elif isinstance(value, dict):
            value = value.get(part)
        else:
            return None
    return value


# -- Match predicates --------------------------------------------------------


@dataclass(frozen=True)
class Eq:
    field: str
    value: Any

    @property
    def fields(self) -> Tuple[str, ...]:
        return (self.field,)


@dataclass(frozen=True)
class In:
    field: str
    values: Tuple[Any, ...]

    @property
    def fields(self) -> Tuple[str, ...]:
        return (self.field,)


@dataclass(frozen=True)
class NotNull:
    field: str

    @property
    def fields(self) -> Tuple[str, ...]:
        return (self.field,)


@dataclass(frozen=True)
class TextSearch:
    """Case-insensitive substring match, OR-ed across ``fields``."""

    fields: Tuple[str, ...]
    query: Optional[str]


Predicate = Union[Eq, In, NotNull, TextSearch]


# -- Reshape expressions -----------------------------------------------------


@dataclass(frozen=True)
class FieldRef:
    path: str

    @property
    def root(self) -> str:
        return self.path.split(".", 1)[0]

    def evaluate(self, doc: Document) -> Any:
        return resolve_path(doc, self.path)


@dataclass(frozen=True)
class Size:
    path: str

    @property
    def root(self) -> str:
        return self.path.split(".", 1)[0]

    def evaluate(self, doc: Document) -> int:
        value = resolve_path(doc, self.path)
        if isinstance(value, list):
            return len(value)
        return 0 if value is None else 1


@dataclass(frozen=True)
class Contains:
    """True when ``value`` appears in the sequence found at ``path``."""

    path: str
    value: Any

    @property
    def root(self) -> str:
        return self.path.split(".", 1)[0]

    def evaluate(self, doc: Document) -> bool:
        if self.value is None:
            return False
        found = resolve_path(doc, self.path)
        if isinstance(found, list):
            return self.value in found
        return found == self.value


Expression = Union[FieldRef, Size, Contains]


# -- Stages ------------------------------------------------------------------


@dataclass(frozen=True)
class Match:
    predicates: Tuple[Predicate, ...]


@dataclass(frozen=True)
class Lookup:
    """Left-outer join of ``target`` documents onto each document under ``into``."""

    target: str
    local_field: str
    foreign_field: str
    into: str
    fields: Optional[Tuple[str, ...]] = None
    stages: Tuple["Stage", ...] = ()


@dataclass(frozen=True)
class Flatten:
    field: str


@dataclass(frozen=True)
class Reshape:
    include: Optional[Tuple[str, ...]] = None
    exclude: Optional[Tuple[str, ...]] = None
    computed: Mapping[str, Expression] = field(default_factory=dict)
    root: Optional[str] = None


@dataclass(frozen=True)
class Sort:
    field: str = DEFAULT_SORT_FIELD
    direction: str = "desc"


@dataclass(frozen=True)
class Paginate:
    page: int = 1
    limit: int = DEFAULT_PAGE_SIZE

    def normalized(self) -> Tuple[int, int]:
        page = max(int(self.page or 1), 1)
        limit = max(1, min(int(self.limit or DEFAULT_PAGE_SIZE), MAX_PAGE_SIZE))
        return page, limit


Stage = Union[Match, Lookup, Flatten, Reshape, Sort, Paginate]


@dataclass(frozen=True)
class Pipeline:
    """Immutable builder; each call returns a new pipeline with one more stage."""

    collection: str
    stages: Tuple[Stage, ...] = ()

    def _with(self, stage: Stage) -> "Pipeline":
        return replace(self, stages=self.stages + (stage,))

    def then(self, *stages: Stage) -> "Pipeline":
        return replace(self, stages=self.stages + tuple(stages))

    def match(self, *predicates: Predicate) -> "Pipeline":
        return self._with(Match(tuple(predicates)))

    def lookup(
        self,
        target: str,
        local_field: str,
        foreign_field: str,
        into: str,
        *,
        fields: Optional[Sequence[str]] = None,
        stages: Sequence[Stage] = (),
    ) -> "Pipeline":
        return self._with(
            Lookup(
                target=target,
                local_field=local_field,
                foreign_field=foreign_field,
                into=into,
                fields=tuple(fields) if fields is not None else None,
                stages=tuple(stages),
            )
        )

    def flatten(self, field_name: str) -> "Pipeline":
        return self._with(Flatten(field_name))

    def reshape(
        self,
        *,
        include: Optional[Sequence[str]] = None,
        exclude: Optional[Sequence[str]] = None,
        computed: Optional[Mapping[str, Expression]] = None,
        root: Optional[str] = None,
    ) -> "Pipeline":
        return self._with(
            Reshape(
                include=tuple(include) if include is not None else None,
                exclude=tuple(exclude) if exclude is not None else None,
                computed=dict(computed or {}),
                root=root,
            )
        )

    def sort(self, field_name: str = DEFAULT_SORT_FIELD, direction: str = "desc") -> "Pipeline":
        return self._with(Sort(field_name, direction))

    def paginate(self, page: int = 1, limit: int = DEFAULT_PAGE_SIZE) -> "Pipeline":
        return self._with(Paginate(page, limit))


def owner_lookup(
    local_field: str = "owner_id",
    into: str = "owner",
    fields: Sequence[str] = ("username", "full_name", "avatar"),
) -> Tuple[Lookup, Flatten]:
    """Single-valued user join, already flattened."""
    return (
        Lookup(target="users", local_field=local_field, foreign_field="id", into=into, fields=tuple(fields)),
        Flatten(into),
    )
