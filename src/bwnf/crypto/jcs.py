# JCS-like canonicalization: sorted keys, no whitespace, UTF-8, absent values dropped.
# Integral floats are written as integers so 60 and 60.0 hash the same.
import json
import math


def normalize(obj):
    if isinstance(obj, dict):
        return {k: normalize(obj[k]) for k in sorted(obj.keys()) if obj[k] is not None}
    elif isinstance(obj, (list, tuple)):
        return [normalize(i) for i in obj]
    elif isinstance(obj, bool):
        return obj
    elif isinstance(obj, float):
        if not math.isfinite(obj):
            raise ValueError("non-finite numbers cannot be canonicalized")
        if obj.is_integer():
            return int(obj)
        return obj
    else:
        return obj


def jcs_canonicalize(obj) -> bytes:
    text = json.dumps(normalize(obj), separators=(",", ":"), ensure_ascii=False, allow_nan=False)
    return text.encode("utf-8")
