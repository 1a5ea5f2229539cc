"""Single executor for composed read pipelines.

Stages run in declared order: match -> lookup -> flatten -> reshape -> sort ->
paginate. Match always runs in SQL. Sort, count and page slicing are pushed into
SQL when no earlier stage can change the sort key or drop documents; otherwise
they run in memory over the output of the preceding stages, so both paths yield
the same page.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple, Type, Union

from sqlalchemy import func, inspect as sa_inspect, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from database import Base
from services.query.stages import (
    DEFAULT_SORT_FIELD,
    Document,
    Eq,
    Flatten,
    In,
    Lookup,
    Match,
    NotNull,
    Paginate,
    Pipeline,
    Predicate,
    Reshape,
    Sort,
    Stage,
    TextSearch,
    resolve_path,
)

logger = logging.getLogger(__name__)

PipelineResult = Union[List[Document], Dict[str, Any]]


class PipelineConfigError(ValueError):
    """Raised when a pipeline references an unknown collection or field, or is malformed."""


def model_for_collection(name: str) -> Type[Base]:
    for mapper in Base.registry.mappers:
        if getattr(mapper.class_, "__tablename__", None) == name:
            return mapper.class_
    raise PipelineConfigError(f"Unknown collection '{name}'.")


def column_names(model: Type[Base]) -> Tuple[str, ...]:
    return tuple(attr.key for attr in sa_inspect(model).column_attrs)


def to_document(row: Base) -> Document:
    return {key: getattr(row, key) for key in column_names(type(row))}


# -- validation --------------------------------------------------------------


def _check_fields(names: Iterable[str], known: Set[str], where: str) -> None:
    unknown = sorted({name for name in names if name not in known})
    if unknown:
        raise PipelineConfigError(f"Unknown field(s) {', '.join(unknown)} in {where} stage.")


def _validate(model: Type[Base], stages: Sequence[Stage], *, nested: bool = False) -> Set[str]:
    """Walk the stages tracking which field names exist; return the final field set."""
    columns = set(column_names(model))
    known: Set[str] = set(columns)
    shapes: Dict[str, Set[str]] = {}
    leading = True
    sorted_once = False

    for index, stage in enumerate(stages):
        if isinstance(stage, Match):
            if nested or not leading:
                raise PipelineConfigError("Match stages must lead the pipeline.")
            for predicate in stage.predicates:
                if isinstance(predicate, TextSearch) and not predicate.fields:
                    raise PipelineConfigError("Text search needs at least one field.")
                _check_fields(predicate.fields, columns, "match")
            continue
        leading = False

        if isinstance(stage, Lookup):
            target = model_for_collection(stage.target)
            _check_fields([stage.foreign_field], set(column_names(target)), "lookup")
            _check_fields([stage.local_field.split(".", 1)[0]], known, "lookup")
            target_known = _validate(target, stage.stages, nested=True)
            if stage.fields is not None:
                _check_fields(stage.fields, target_known, "lookup")
                target_known = {"id", *stage.fields}
            shapes[stage.into] = target_known
            known.add(stage.into)
        elif isinstance(stage, Flatten):
            _check_fields([stage.field], known, "flatten")
        elif isinstance(stage, Reshape):
            if stage.include is not None and stage.exclude is not None:
                raise PipelineConfigError("Reshape takes either include or exclude, not both.")
            if stage.root is not None:
                if nested:
                    raise PipelineConfigError("Root promotion is not allowed inside a lookup.")
                if stage.root not in shapes or stage.root not in known:
                    raise PipelineConfigError(f"Unknown field(s) {stage.root} in reshape stage.")
                known = set(shapes[stage.root])
                shapes = {}
            computed = set(stage.computed)
            _check_fields([expr.root for expr in stage.computed.values()], known, "reshape")
            if stage.include is not None:
                _check_fields([name for name in stage.include if name not in computed], known, "reshape")
                known = ({"id"} & known) | set(stage.include) | computed
            elif stage.exclude is not None:
                _check_fields(stage.exclude, known, "reshape")
                known = (known - set(stage.exclude)) | computed
            else:
                known = known | computed
            shapes = {name: shape for name, shape in shapes.items() if name in known and name not in computed}
        elif isinstance(stage, Sort):
            if nested:
                raise PipelineConfigError("Sort is not allowed inside a lookup.")
            if sorted_once:
                raise PipelineConfigError("A pipeline takes at most one sort stage.")
            if stage.direction not in ("asc", "desc"):
                raise PipelineConfigError(f"Unknown sort direction '{stage.direction}'.")
            _check_fields([stage.field], known, "sort")
            sorted_once = True
        elif isinstance(stage, Paginate):
            if nested or index != len(stages) - 1:
                raise PipelineConfigError("Paginate must be the final stage.")
        else:
            raise PipelineConfigError(f"Unsupported stage {type(stage).__name__}.")

    return known


# -- stage execution ---------------------------------------------------------


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _predicate_clause(model: Type[Base], predicate: Predicate):
    if isinstance(predicate, TextSearch):
        term = (predicate.query or "").strip()
        if not term:
            return None
        pattern = f"%{_escape_like(term)}%"
        return or_(*(getattr(model, name).ilike(pattern, escape="\\") for name in predicate.fields))
    column = getattr(model, predicate.field)
    if isinstance(predicate, Eq):
        return column.is_(None) if predicate.value is None else column == predicate.value
    if isinstance(predicate, In):
        return column.in_(list(predicate.values))
    if isinstance(predicate, NotNull):
        return column.isnot(None)
    raise PipelineConfigError(f"Unsupported predicate {type(predicate).__name__}.")


def _local_keys(value: Any) -> List[Any]:
    if isinstance(value, list):
        return [item for item in value if item is not None]
    return [] if value is None else [value]


async def _run_lookup(db: AsyncSession, docs: List[Document], lookup: Lookup) -> List[Document]:
    target = model_for_collection(lookup.target)
    wanted: List[Any] = []
    for doc in docs:
        wanted.extend(_local_keys(resolve_path(doc, lookup.local_field)))
    wanted = list(dict.fromkeys(wanted))

    index: Dict[Any, List[Document]] = {}
    if wanted:
        stmt = select(target).where(_predicate_clause(target, In(lookup.foreign_field, tuple(wanted))))
        if hasattr(target, DEFAULT_SORT_FIELD):
            stmt = stmt.order_by(getattr(target, DEFAULT_SORT_FIELD).asc())
        rows = (await db.execute(stmt)).scalars().all()
        keys = [getattr(row, lookup.foreign_field) for row in rows]
        joined = await _apply_stages(db, [to_document(row) for row in rows], lookup.stages)
        if lookup.fields is not None:
            allowed = {"id", *lookup.fields}
            joined = [{key: value for key, value in doc.items() if key in allowed} for doc in joined]
        for key, doc in zip(keys, joined):
            index.setdefault(key, []).append(doc)

    for doc in docs:
        local = resolve_path(doc, lookup.local_field)
        matched: List[Document] = []
        for key in dict.fromkeys(_local_keys(local)):
            matched.extend(dict(item) for item in index.get(key, []))
        doc[lookup.into] = matched
    return docs


def _flatten(docs: List[Document], stage: Flatten) -> List[Document]:
    for doc in docs:
        value = doc.get(stage.field)
        if isinstance(value, list):
            doc[stage.field] = value[0] if value else None
    return docs


def _reshape_one(doc: Document, stage: Reshape) -> Optional[Document]:
    if stage.root is not None:
        promoted = doc.get(stage.root)
        if not isinstance(promoted, dict):
            return None
        doc = promoted
    computed = {name: expr.evaluate(doc) for name, expr in stage.computed.items()}
    if stage.include is not None:
        shaped = {key: doc[key] for key in ("id", *stage.include) if key in doc and key not in computed}
    elif stage.exclude is not None:
        dropped = set(stage.exclude)
        shaped = {key: value for key, value in doc.items() if key not in dropped}
    else:
        shaped = dict(doc)
    shaped.update(computed)
    return shaped


def _sort_documents(docs: List[Document], stage: Sort) -> List[Document]:
    descending = stage.direction == "desc"
    present = [doc for doc in docs if doc.get(stage.field) is not None]
    missing = [doc for doc in docs if doc.get(stage.field) is None]
    try:
        present.sort(key=lambda doc: doc[stage.field], reverse=descending)
    except TypeError as exc:
        raise PipelineConfigError(f"Field '{stage.field}' is not sortable.") from exc
    # Missing values order lowest.
    return present + missing if descending else missing + present


async def _apply_stages(db: AsyncSession, docs: List[Document], stages: Sequence[Stage]) -> List[Document]:
    for stage in stages:
        if isinstance(stage, Lookup):
            docs = await _run_lookup(db, docs, stage)
        elif isinstance(stage, Flatten):
            docs = _flatten(docs, stage)
        elif isinstance(stage, Reshape):
            shaped_docs = []
            for doc in docs:
                shaped = _reshape_one(doc, stage)
                if shaped is not None:
                    shaped_docs.append(shaped)
            docs = shaped_docs
        elif isinstance(stage, Sort):
            docs = _sort_documents(docs, stage)
    return docs


def _touches(stage: Stage, field_name: str) -> bool:
    if isinstance(stage, Lookup):
        return stage.into == field_name
    if isinstance(stage, Flatten):
        return stage.field == field_name
    if isinstance(stage, Reshape):
        return field_name in stage.computed
    return False


def _can_push_down(model: Type[Base], stages: Sequence[Stage], sort: Optional[Sort]) -> bool:
    if any(isinstance(stage, Reshape) and stage.root is not None for stage in stages):
        return False
    if sort is None:
        return True
    if sort.field not in column_names(model):
        return False
    for stage in stages:
        if stage is sort:
            return True
        if _touches(stage, sort.field):
            return False
    return True


def _page_payload(items: List[Document], total: int, page: int, limit: int) -> Dict[str, Any]:
    total_pages = math.ceil(total / limit) if total else 0
    return {
        "items": items,
        "total_count": total,
        "total_pages": total_pages,
        "page": page,
        "limit": limit,
        "has_next_page": page < total_pages,
        "has_prev_page": page > 1,
    }


async def run_pipeline(db: AsyncSession, pipeline: Pipeline) -> PipelineResult:
    """Validate and execute ``pipeline``.

    Returns a list of documents, or a page payload when the pipeline ends with
    a Paginate stage. Raises PipelineConfigError for unknown names.
    """
    model = model_for_collection(pipeline.collection)
    _validate(model, pipeline.stages)

    predicates = [p for stage in pipeline.stages if isinstance(stage, Match) for p in stage.predicates]
    rest: List[Stage] = [stage for stage in pipeline.stages if not isinstance(stage, Match)]
    paginate: Optional[Paginate] = None
    if rest and isinstance(rest[-1], Paginate):
        paginate = rest.pop()
    sort = next((stage for stage in rest if isinstance(stage, Sort)), None)
    if sort is None and DEFAULT_SORT_FIELD in column_names(model):
        sort = Sort()
        rest.insert(0, sort)

    stmt = select(model)
    for predicate in predicates:
        clause = _predicate_clause(model, predicate)
        if clause is not None:
            stmt = stmt.where(clause)

    pushed_down = _can_push_down(model, rest, sort)
    total: Optional[int] = None
    page, limit = paginate.normalized() if paginate else (1, 0)

    if pushed_down:
        if sort is not None:
            rest.remove(sort)
            column = getattr(model, sort.field)
            stmt = stmt.order_by(column.desc() if sort.direction == "desc" else column.asc())
        if paginate is not None:
            count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
            total = int((await db.execute(count_stmt)).scalar_one())
            stmt = stmt.offset((page - 1) * limit).limit(limit)

    rows = (await db.execute(stmt)).scalars().all()
    docs = await _apply_stages(db, [to_document(row) for row in rows], rest)

    logger.debug(
        "pipeline_run collection=%s stages=%s pushed_down=%s rows=%s",
        pipeline.collection,
        len(pipeline.stages),
        pushed_down,
        len(docs),
    )

    if paginate is None:
        return docs
    if total is None:
        total = len(docs)
        start = (page - 1) * limit
        docs = docs[start:start + limit]
    return _page_payload(docs, total, page, limit)
