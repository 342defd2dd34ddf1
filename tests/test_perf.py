import logging

from happy_tree._perf import LevelCounter, timed
from happy_tree.plotting import save_level_histogram


def test_level_counter_merge_and_progress(caplog):
    logger = logging.getLogger("tests.counter")
    counter = LevelCounter(log_every=4, logger=logger)
    with caplog.at_level(logging.INFO, logger=logger.name):
        counter.merge({1: 1, 2: 3})
        counter.merge({2: 2, 4: 1})
        counter.log_summary()
    assert counter.total == 7
    assert counter.snapshot() == {1: 1, 2: 5, 4: 1}
    messages = [r.getMessage() for r in caplog.records]
    assert "drawn: 000004" in messages
    assert "level 3 -> 0" in messages


def test_timed_logs_start_and_end(caplog):
    logger = logging.getLogger("tests.timed")
    with caplog.at_level(logging.INFO, logger=logger.name):
        with timed(logger, "stage", n=3):
            pass
    messages = [r.getMessage() for r in caplog.records]
    assert messages[0] == "stage.start | n=3"
    assert messages[1].startswith("stage.end | dt_ms=")


def test_timed_reports_outcome_and_warns_when_slow(caplog):
    logger = logging.getLogger("tests.timed")
    with caplog.at_level(logging.INFO, logger=logger.name):
        with timed(logger, "find_cycles", warn_ms=0, domain_size=0x10) as stats:
            stats["cycles"] = 2
    start, end = caplog.records
    assert start.getMessage() == "find_cycles.start | domain_size=0x10"
    assert end.levelno == logging.WARNING
    assert end.getMessage().startswith("find_cycles.end | cycles=2 domain_size=0x10 dt_ms=")


def test_level_histogram(tmp_path):
    assert save_level_histogram(counts={}, out_path=str(tmp_path / "none.png")) is None
    path = save_level_histogram(counts={1: 1, 2: 30, 4: 7}, out_path=str(tmp_path / "levels.png"))
    assert path and (tmp_path / "levels.png").exists()
