import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from pizza_service.core.database import Base
from pizza_service.core.errors import ValidationError
from pizza_service.models.franchise import Franchise
from pizza_service.services.listing import (
    apply_name_filter,
    matches_name_filter,
    normalize_paging,
    paginate,
)


def _db_with_franchises(names):
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    db = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    for name in names:
        db.add(Franchise(name=name))
    db.commit()
    return db


@pytest.mark.parametrize(
    "name,name_filter,expected",
    [
        ("Foobar", "Foo*", True),
        ("Foo", "Foo*", True),
        ("xFoo", "Foo*", False),
        ("foobar", "Foo*", False),
        ("Foo", "Foo", True),
        ("Foobar", "Foo", False),
        ("anything", None, True),
        ("anything", "", True),
        ("anything", "*", True),
    ],
)
def test_matches_name_filter(name, name_filter, expected):
    assert matches_name_filter(name, name_filter) is expected


def test_paginate_reports_more_without_counting():
    db = _db_with_franchises([f"F{i}" for i in range(5)])
    query = db.query(Franchise).order_by(Franchise.id.asc())

    first = paginate(query, page=0, limit=3)
    second = paginate(query, page=1, limit=3)
    beyond = paginate(query, page=5, limit=3)

    assert [f.name for f in first.rows] == ["F0", "F1", "F2"]
    assert first.more is True
    assert [f.name for f in second.rows] == ["F3", "F4"]
    assert second.more is False
    assert beyond.rows == []
    assert beyond.more is False
    db.close()


def test_exact_page_boundary_has_no_more():
    db = _db_with_franchises(["A", "B", "C"])

    result = paginate(db.query(Franchise).order_by(Franchise.id.asc()), page=0, limit=3)

    assert len(result.rows) == 3
    assert result.more is False
    db.close()


def test_sql_filter_agrees_with_predicate():
    names = ["Foobar", "Foo", "xFoo", "foo", "Bar"]
    db = _db_with_franchises(names)

    for name_filter in ("Foo*", "Foo", "*", None, "Ba*"):
        rows = apply_name_filter(db.query(Franchise).order_by(Franchise.id.asc()), Franchise.name, name_filter).all()
        assert [f.name for f in rows] == [n for n in names if matches_name_filter(n, name_filter)]
    db.close()


def test_paging_defaults_and_bounds():
    assert normalize_paging(None, None) == (0, 10)

    with pytest.raises(ValidationError):
        normalize_paging(-1, 10)
    with pytest.raises(ValidationError):
        normalize_paging(0, 0)
    with pytest.raises(ValidationError):
        normalize_paging(0, 101)
