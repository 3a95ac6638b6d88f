"""Tests for structured event logging."""

import json
import logging

from flyer.logging_config import get_logger, log_flyer_event, setup_logging


class TestEventLog:
    def test_events_written_as_jsonl(self, tmp_path, coordinator, shop_path, make_product):
        setup_logging(log_to_console=False, log_dir=tmp_path)
        coordinator.append_product(shop_path, make_product("Chlieb"))
        coordinator.append_product(shop_path, make_product("Chlieb"))

        files = list(tmp_path.glob("flyer_*.jsonl"))
        assert len(files) == 1
        entries = [json.loads(line) for line in files[0].read_text(encoding="utf-8").splitlines()]
        events = [e.get("event_type") for e in entries if e.get("event_type")]
        assert events == ["product_appended", "product_exists"]
        assert entries[0]["path"] == shop_path

    def test_get_logger_namespace(self):
        assert get_logger("storage").name == "flyer.storage"
        assert get_logger("flyer.merge").name == "flyer.merge"

    def test_disabled_level_is_skipped(self, caplog):
        logger = get_logger("quiet")
        logger.setLevel(logging.ERROR)
        with caplog.at_level(logging.ERROR, logger="flyer.quiet"):
            log_flyer_event("flyer_saved", {"message": "saved"}, logger_name="quiet")
        assert caplog.records == []
