import json
import math
from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pandas as pd

from pvyield.core.debug import (
    JsonDebugWriter,
    JsonlDebugWriter,
    ListDebugCollector,
    NullDebugCollector,
    ScopedDebugCollector,
    build_debug_collector,
)


def test_list_collector_records_events():
    collector = ListDebugCollector()
    collector.emit("stage1", {"b": 2, "a": 1}, ts="2019-01-01T00:00:00", scope="shadowed", module=0)
    assert len(collector.events) == 1
    event = collector.events[0]
    assert event["stage"] == "stage1"
    assert event["scope"] == "shadowed"
    assert event["module"] == 0
    # payload should be key-sorted for determinism
    assert list(event["payload"].keys()) == ["a", "b"]
    assert collector.stages() == ["stage1"]


def test_jsonl_writer(tmp_path):
    path = tmp_path / "debug.jsonl"
    writer = JsonlDebugWriter(path)
    writer.emit("stage1", {"z": 1, "y": {"b": 1, "a": 2}}, ts=pd.Timestamp("2019-06-21 12:00"))
    writer.emit("stage2", {"b": [2, 1]}, ts=None, scope="unshadowed", module=1)
    writer.close()

    lines = path.read_text().splitlines()
    assert len(lines) == 2
    events = [json.loads(line) for line in lines]
    assert events[0]["stage"] == "stage1"
    assert events[0]["ts"] == "2019-06-21T12:00:00"
    assert list(events[0]["payload"]["y"].keys()) == ["a", "b"]
    assert events[1]["scope"] == "unshadowed"


def test_json_writer_writes_array_on_close(tmp_path):
    path = tmp_path / "nested" / "debug.json"
    writer = build_debug_collector(path)
    assert isinstance(writer, JsonDebugWriter)
    writer.emit("stage", {"value": np.float64(1.5), "bad": math.nan}, ts=None)
    writer.close()

    events = json.loads(path.read_text())
    assert events[0]["payload"] == {"bad": "nan", "value": 1.5}


def test_factory_defaults_to_jsonl(tmp_path):
    writer = build_debug_collector(tmp_path / "debug.log")
    try:
        assert isinstance(writer, JsonlDebugWriter)
    finally:
        writer.close()


def test_scoped_collector_injects_context():
    inner = ListDebugCollector()
    scoped = ScopedDebugCollector(ScopedDebugCollector(inner, scope="shadowed"), module=3)
    scoped.emit("poa.summary", {}, ts=None)
    event = inner.events[0]
    assert event["scope"] == "shadowed"
    assert event["module"] == 3


def test_null_collector_noop():
    NullDebugCollector().emit("stage", {"x": 1}, ts=0)


def test_jsonl_writer_lines_stay_whole_across_threads(tmp_path):
    path = tmp_path / "debug.jsonl"
    writer = JsonlDebugWriter(path)
    payload = {f"key{i}": list(range(50)) for i in range(20)}

    def burst(scope):
        for i in range(200):
            writer.emit("stage", payload, ts=i, scope=scope)

    with ThreadPoolExecutor(max_workers=4) as pool:
        list(pool.map(burst, ["a", "b", "c", "d"]))
    writer.close()

    lines = path.read_text().splitlines()
    assert len(lines) == 800
    events = [json.loads(line) for line in lines]
    assert {e["scope"] for e in events} == {"a", "b", "c", "d"}
