"""Deterministic debug collectors for structured JSON events.

Every calculation stage accepts an optional collector and emits one event per
stage summary. Events carry the pass they belong to (``scope``, e.g.
``shadowed``/``unshadowed``) and, where relevant, the module index.
"""
from __future__ import annotations

import datetime as _dt
import json
import math
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol


class DebugCollector(Protocol):
    def emit(self, stage: str, payload: Dict[str, Any], *, ts: Any, scope: Optional[str] = None, module: Optional[int] = None) -> None:
        ...


def _json_safe_scalar(val: Any) -> Any:
    """Convert timestamps, numpy scalars and non-finite floats to JSON-safe values."""
    if isinstance(val, (_dt.datetime, _dt.date, _dt.time)) or hasattr(val, "isoformat"):
        return val.isoformat()
    if hasattr(val, "item") and not isinstance(val, (list, dict)):
        # numpy scalar
        val = val.item()
    if isinstance(val, float) and not math.isfinite(val):
        return str(val)
    return val


def _ordered(obj: Any) -> Any:
    """Recursively order mappings for deterministic JSON dumps."""
    if isinstance(obj, dict):
        return {str(k): _ordered(obj[k]) for k in sorted(obj, key=str)}
    if isinstance(obj, (list, tuple)):
        return [_ordered(v) for v in obj]
    return _json_safe_scalar(obj)


def _event(stage: str, payload: Dict[str, Any], ts: Any, scope: Optional[str], module: Optional[int]) -> Dict[str, Any]:
    return {
        "stage": stage,
        "ts": _json_safe_scalar(ts),
        "scope": scope,
        "module": module,
        "payload": _ordered(payload),
    }


class NullDebugCollector:
    def emit(self, stage: str, payload: Dict[str, Any], *, ts: Any, scope: Optional[str] = None, module: Optional[int] = None) -> None:  # noqa: D401
        """Discard events (no-op)."""
        return


@dataclass
class ListDebugCollector:
    events: List[Dict[str, Any]] = field(default_factory=list)

    def emit(self, stage: str, payload: Dict[str, Any], *, ts: Any, scope: Optional[str] = None, module: Optional[int] = None) -> None:
        self.events.append(_event(stage, payload, ts, scope, module))

    def stages(self) -> List[str]:
        return [e["stage"] for e in self.events]


class JsonlDebugWriter:
    """Append one JSON object per line; flushed after every event, safe across threads."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._fh = self.path.open("a", encoding="utf-8")
        self._lock = threading.Lock()

    def emit(self, stage: str, payload: Dict[str, Any], *, ts: Any, scope: Optional[str] = None, module: Optional[int] = None) -> None:
        line = json.dumps(_event(stage, payload, ts, scope, module), sort_keys=True) + "\n"
        # shadowed and unshadowed passes may share one writer across threads
        with self._lock:
            self._fh.write(line)
            self._fh.flush()

    def close(self) -> None:
        if not self._fh.closed:
            self._fh.close()

    def __del__(self):  # pragma: no cover - best effort cleanup
        try:
            self.close()
        except Exception:
            pass


class JsonDebugWriter:
    """Collect all events in memory then write a single JSON array on ``finalize``."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._events: List[Dict[str, Any]] = []

    def emit(self, stage: str, payload: Dict[str, Any], *, ts: Any, scope: Optional[str] = None, module: Optional[int] = None) -> None:
        self._events.append(_event(stage, payload, ts, scope, module))

    def finalize(self) -> None:
        self.path.write_text(json.dumps(self._events, indent=2, sort_keys=True))

    def close(self) -> None:
        self.finalize()


def build_debug_collector(path: str | Path) -> DebugCollector:
    """Factory: .json → JsonDebugWriter, otherwise JsonlDebugWriter."""
    if str(path).lower().endswith(".json"):
        return JsonDebugWriter(path)
    return JsonlDebugWriter(path)


class ScopedDebugCollector:
    """Wrapper that injects fixed pass/module context into every emit."""

    def __init__(self, inner: DebugCollector, *, scope: Optional[str] = None, module: Optional[int] = None):
        self.inner = inner
        self.scope = scope
        self.module = module

    def emit(self, stage: str, payload: Dict[str, Any], *, ts: Any, scope: Optional[str] = None, module: Optional[int] = None) -> None:
        eff_scope = scope if scope is not None else self.scope
        eff_module = module if module is not None else self.module
        self.inner.emit(stage, payload, ts=ts, scope=eff_scope, module=eff_module)


__all__ = [
    "DebugCollector",
    "NullDebugCollector",
    "ListDebugCollector",
    "JsonlDebugWriter",
    "JsonDebugWriter",
    "ScopedDebugCollector",
    "build_debug_collector",
]
