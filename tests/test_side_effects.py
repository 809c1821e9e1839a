# tests/test_side_effects.py

import logging

from tracker_ingest.side_effects import LoggingSideEffects, SideEffectDispatcher


def test_dispatcher_logs_failures(caplog):
    dispatcher = SideEffectDispatcher(max_workers=1)

    def boom():
        raise RuntimeError("webhook down")

    with caplog.at_level(logging.ERROR, logger="tracker_ingest.side_effects"):
        ok = dispatcher.submit("ok", lambda: "done")
        bad = dispatcher.submit("notify_scrape_failed", boom)
        dispatcher.shutdown(wait=True)

    assert ok.result() == "done"
    assert isinstance(bad.exception(), RuntimeError)
    assert dispatcher.get_stats() == {"submitted": 2, "completed": 1, "errors": 1}
    assert "Side effect notify_scrape_failed failed: webhook down" in caplog.text


def test_logging_side_effects(caplog):
    effects = LoggingSideEffects()

    with caplog.at_level(logging.INFO, logger="tracker_ingest.side_effects"):
        effects.notify_scrape_complete("t1", "u1", 3, 1)
        effects.notify_scrape_failed("t1", "u1", "boom")
        effects.recompute_derived_score("u1", "t1")

    assert "Scrape complete for tracker t1 (user u1): 3 season(s) stored, 1 failed" in caplog.text
    assert "Scrape failed for tracker t1 (user u1): boom" in caplog.text
    assert "Derived score recompute requested for user u1" in caplog.text


def test_shutdown_is_idempotent():
    dispatcher = SideEffectDispatcher()
    dispatcher.shutdown()
    dispatcher.shutdown(wait=False)
