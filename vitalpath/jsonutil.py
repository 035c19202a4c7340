from __future__ import annotations

import json
from typing import Any

from vitalpath.records import SetRecord


def dumps(obj: Any) -> str:
    return json.dumps(obj, ensure_ascii=False, separators=(",", ":"))


def loads(s: str | None) -> Any:
    if not s:
        return None
    return json.loads(s)


def _set_from_obj(obj: Any) -> SetRecord:
    if not isinstance(obj, dict):
        raise ValueError(f"Set entry must be an object, got {type(obj).__name__}")
    reps = obj.get("reps", 0)
    if isinstance(reps, bool) or not isinstance(reps, int) or reps < 0:
        raise ValueError(f"Invalid reps value: {reps!r}")
    # older payloads used "weight" instead of "weight_kg"
    weight = obj.get("weight_kg", obj.get("weight"))
    if weight is not None:
        if isinstance(weight, bool) or not isinstance(weight, (int, float)) or weight < 0:
            raise ValueError(f"Invalid weight value: {weight!r}")
        weight = float(weight)
    return SetRecord(reps=reps, weight_kg=weight)


def sets_to_json(sets: list[SetRecord] | tuple[SetRecord, ...] | None) -> str | None:
    if sets is None:
        return None
    return dumps([{"reps": s.reps, "weight_kg": s.weight_kg} for s in sets])


def sets_from_json(s: str | None) -> tuple[SetRecord, ...] | None:
    """Decode and validate a stored set list; None means no per-set data."""
    obj = loads(s)
    if obj is None:
        return None
    if not isinstance(obj, list):
        raise ValueError("Set details must be a JSON list")
    return tuple(_set_from_obj(x) for x in obj)
