import logging

from sqlalchemy import text

from booking_engine.database import log_slow_queries


def test_slow_queries_are_logged(engine, caplog):
    log_slow_queries(engine, threshold=0)

    with caplog.at_level(logging.WARNING, logger="booking_engine.database"):
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    assert any("Slow query" in r.message and "SELECT 1" in r.message for r in caplog.records)


def test_fast_queries_stay_quiet(engine, caplog):
    log_slow_queries(engine, threshold=60)

    with caplog.at_level(logging.WARNING, logger="booking_engine.database"):
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    assert not [r for r in caplog.records if r.name == "booking_engine.database"]
