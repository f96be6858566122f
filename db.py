# db.py

#============================================================#
#                       Tallyfield CRM                       #
#============================================================#
# Purpose     : Row-level data access for the CRM pages.     #
#               Every call is one session / one commit and   #
#               hands back plain dicts, never ORM instances. #
#============================================================#


from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from dateutil import parser
from sqlalchemy import Date, DateTime, create_engine
from sqlalchemy import delete as sa_delete
from sqlalchemy import update as sa_update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.types import TypeDecorator, TypeEngine
from sqlmodel import Session, SQLModel, select

from config import get_setting
from models import (
    Contact, Employee, Project, ProjectTask, Task, TaskAssignee,
    TaskDependency, TaskTemplate, TaskWorkflowStep,
)

logger = logging.getLogger(__name__)

TABLES = {
    m.__tablename__: m
    for m in (Task, TaskAssignee, Project, ProjectTask, Employee, Contact,
              TaskDependency, TaskTemplate, TaskWorkflowStep)
}

Row = Dict[str, Any]


class StoreError(Exception):
    """A store round trip failed (connection, constraint, unknown table...)."""

    def __init__(self, table: str, operation: str, detail: str):
        super().__init__(f"{operation} on {table} failed: {detail}")
        self.table = table
        self.operation = operation
        self.detail = detail


@dataclass(frozen=True)
class Related:
    """Rows from another table to inline onto each result row.

    ``foreign_key`` set: the other table points at us (many side, list).
    ``local_key`` set: we point at the other table (one side, row or None).
    """
    table: str
    foreign_key: Optional[str] = None
    local_key: Optional[str] = None
    alias: Optional[str] = None
    filters: Optional[Dict[str, Any]] = None

    @property
    def name(self) -> str:
        return self.alias or self.table


# ---- Engine / Session ----
def make_engine(url: Optional[str] = None) -> Engine:
    url = url or get_setting("DATABASE_URL")
    return create_engine(url, pool_pre_ping=True, future=True)


def init_db(engine: Engine) -> None:
    SQLModel.metadata.create_all(engine)


# ---- filters ----
_OPS = {
    "eq": lambda c, v: c == v,
    "neq": lambda c, v: c != v,
    "gt": lambda c, v: c > v,
    "gte": lambda c, v: c >= v,
    "lt": lambda c, v: c < v,
    "lte": lambda c, v: c <= v,
    "in": lambda c, v: c.in_(list(v)),
    "isnull": lambda c, v: c.is_(None) if v else c.is_not(None),
}


def _column_type(column) -> TypeEngine:
    # sqlmodel maps datetime fields to a TypeDecorator (UTCDateTime) over DateTime
    ctype = column.type
    if isinstance(ctype, TypeDecorator):
        ctype = ctype.impl if isinstance(ctype.impl, TypeEngine) else ctype.impl()
    return ctype


def _coerce_value(column, value):
    if value is None or not isinstance(value, str):
        return value
    ctype = _column_type(column)
    if isinstance(ctype, DateTime):
        return parser.isoparse(value)
    if isinstance(ctype, Date):
        return date.fromisoformat(value[:10])
    return value


def _where_clauses(model, filters: Optional[Dict[str, Any]]) -> list:
    clauses = []
    for key, value in (filters or {}).items():
        name, _, op = key.partition("__")
        op = op or "eq"
        if op not in _OPS:
            raise ValueError(f"Unknown filter operator {op!r} in {key!r}")
        column = model.__table__.columns.get(name)
        if column is None:
            raise ValueError(f"{model.__tablename__} has no column {name!r}")
        attr = getattr(model, name)
        if op == "in":
            value = [_coerce_value(column, v) for v in value]
        elif op != "isnull":
            value = _coerce_value(column, value)
        clauses.append(_OPS[op](attr, value))
    return clauses


def _coerce_row(model, row: Row) -> Row:
    cols = model.__table__.columns
    out = {}
    for k, v in row.items():
        if k not in cols:
            raise ValueError(f"{model.__tablename__} has no column {k!r}")
        out[k] = _coerce_value(cols[k], v)
    return out


def _to_dict(obj) -> Row:
    return {c.name: getattr(obj, c.name) for c in obj.__table__.columns}


class SqlStore:
    """query / insert / update / delete by table name and filter dict."""

    def __init__(self, engine: Engine, current_user: Optional[str] = None):
        self.engine = engine
        self.SessionLocal = sessionmaker(bind=engine, class_=Session, autoflush=False,
                                         expire_on_commit=False)
        self._current_user = current_user

    def current_user(self) -> Optional[str]:
        return self._current_user

    def _model(self, table: str, operation: str):
        try:
            return TABLES[table]
        except KeyError:
            raise StoreError(table, operation, "unknown table") from None

    def _run(self, table: str, operation: str, fn):
        try:
            with self.SessionLocal() as s:
                result = fn(s)
                s.commit()
                return result
        except SQLAlchemyError as e:
            logger.warning("%s on %s failed: %s", operation, table, e)
            raise StoreError(table, operation, str(e)) from e

    # ---- reads ----
    def query(self, table: str, filters: Optional[Dict[str, Any]] = None,
              related: Sequence[Related] = (), order_by: Union[str, Sequence[str], None] = None) -> List[Row]:
        model = self._model(table, "query")
        clauses = _where_clauses(model, filters)
        order = [order_by] if isinstance(order_by, str) else list(order_by or [])

        def _q(s: Session):
            stmt = select(model).where(*clauses)
            for key in order:
                desc = key.startswith("-")
                col = getattr(model, key.lstrip("-"))
                stmt = stmt.order_by(col.desc() if desc else col.asc())
            rows = [_to_dict(o) for o in s.exec(stmt).all()]
            for rel in related:
                self._inline(s, rows, rel)
            return rows

        return self._run(table, "query", _q)

    def _inline(self, s: Session, rows: List[Row], rel: Related) -> None:
        other = self._model(rel.table, "query")
        extra = _where_clauses(other, rel.filters)
        if rel.foreign_key:
            ids = {r["id"] for r in rows}
            fk = getattr(other, rel.foreign_key)
            found = s.exec(select(other).where(fk.in_(list(ids)), *extra)).all() if ids else []
            grouped: Dict[Any, List[Row]] = {}
            for o in found:
                d = _to_dict(o)
                grouped.setdefault(d[rel.foreign_key], []).append(d)
            for r in rows:
                r[rel.name] = grouped.get(r["id"], [])
        elif rel.local_key:
            keys = {r[rel.local_key] for r in rows if r.get(rel.local_key) is not None}
            found = s.exec(select(other).where(other.id.in_(list(keys)), *extra)).all() if keys else []
            by_id = {o.id: _to_dict(o) for o in found}
            for r in rows:
                r[rel.name] = by_id.get(r.get(rel.local_key))
        else:
            raise ValueError(f"Related({rel.table!r}) needs foreign_key or local_key")

    # ---- writes ----
    def insert(self, table: str, row: Union[Row, Iterable[Row]]):
        model = self._model(table, "insert")
        single = isinstance(row, dict)
        payload = [row] if single else list(row)
        objs = [model(**_coerce_row(model, r)) for r in payload]

        def _ins(s: Session):
            s.add_all(objs)
            s.flush()
            return [_to_dict(o) for o in objs]

        created = self._run(table, "insert", _ins)
        return created[0] if single else created

    def update(self, table: str, filters: Dict[str, Any], patch: Row) -> None:
        model = self._model(table, "update")
        if not filters:
            raise ValueError("update() needs a filter; refusing to touch every row")
        stmt = sa_update(model).where(*_where_clauses(model, filters)).values(**_coerce_row(model, patch))
        self._run(table, "update", lambda s: s.exec(stmt))

    def delete(self, table: str, filters: Dict[str, Any]) -> None:
        model = self._model(table, "delete")
        if not filters:
            raise ValueError("delete() needs a filter; refusing to touch every row")
        stmt = sa_delete(model).where(*_where_clauses(model, filters))
        self._run(table, "delete", lambda s: s.exec(stmt))


def get_store(current_user: Optional[str] = None, url: Optional[str] = None) -> SqlStore:
    engine = make_engine(url)
    init_db(engine)
    return SqlStore(engine, current_user=current_user)
