import asyncio
import json
import logging

import pytest

from modindex.main.log_context import clear_log_context, get_log_context, set_log_context
from modindex.main.logging import ContextJSONFormatter, get_logger


@pytest.fixture(autouse=True)
def clean_context():
    clear_log_context()
    yield
    clear_log_context()


def test_none_removes_a_key():
    set_log_context(worker_id="tags-0", repo_id="corp/a")
    set_log_context(repo_id=None)

    assert get_log_context() == {"worker_id": "tags-0"}


@pytest.mark.asyncio
async def test_context_does_not_leak_between_tasks():
    seen = {}

    async def worker(worker_id: str):
        set_log_context(worker_id=worker_id)
        await asyncio.sleep(0)
        seen[worker_id] = get_log_context()["worker_id"]

    await asyncio.gather(asyncio.create_task(worker("tags-0")), asyncio.create_task(worker("tags-1")))

    assert seen == {"tags-0": "tags-0", "tags-1": "tags-1"}
    assert get_log_context() == {}


def test_json_records_carry_context_and_extras():
    set_log_context(worker_id="tags-3", repo_id="corp/a")
    record = logging.LogRecord("modindex.test", logging.INFO, __file__, 1, "Reindexed %d tags", (4,), None)
    record.tag_count = 4

    payload = json.loads(ContextJSONFormatter().format(record))

    assert payload["message"] == "Reindexed 4 tags"
    assert payload["worker_id"] == "tags-3"
    assert payload["repo_id"] == "corp/a"
    assert payload["tag_count"] == 4
    assert payload["level"] == "info"


def test_json_records_without_extras_carry_only_the_basics():
    record = logging.LogRecord("modindex.test", logging.WARNING, __file__, 1, "plain", (), None)

    payload = json.loads(ContextJSONFormatter().format(record))

    assert set(payload) == {"timestamp", "level", "logger", "message"}


def test_each_logger_has_one_handler():
    logger = get_logger("modindex.test.handlers")

    assert get_logger("modindex.test.handlers") is logger
    assert len(logger.handlers) == 1
