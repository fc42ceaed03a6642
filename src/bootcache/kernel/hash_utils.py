"""Canonical JSON and sha256 digests for fingerprints and status records.

Two runs with the same logical inputs must produce the same bytes, whatever
the interpreter, platform or dict insertion order. Canonical form:

- mapping keys sorted at every level; sequence order kept as given
- strings (keys included) in Unicode NFC
- only None, bool, int, str, dict, list and tuple; floats are rejected,
  since their repr is not a stable identity
- compact separators, UTF-8 output without ASCII escaping

Digests are rendered as ``sha256:<64 lowercase hex chars>``.
"""

import hashlib
import json
import unicodedata
from typing import Any, Union


DIGEST_PREFIX = "sha256:"
_HEX_DIGITS = frozenset("0123456789abcdef")


class CanonicalizationError(ValueError):
    """Input cannot be put in canonical JSON form."""


def _where(path: str) -> str:
    return path or "<root>"


def _canonical(value: Any, path: str = "") -> Any:
    """Validate ``value`` and return its canonical equivalent in one pass."""
    # bool is an int subclass; both pass through unchanged
    if value is None or isinstance(value, (bool, int)):
        return value
    if isinstance(value, str):
        return unicodedata.normalize("NFC", value)
    if isinstance(value, float):
        raise CanonicalizationError(
            f"Floats are not allowed in canonical JSON (at {_where(path)}); "
            f"encode the value as a string"
        )
    if isinstance(value, dict):
        out = {}
        for key in value:
            if not isinstance(key, str):
                raise CanonicalizationError(
                    f"Mapping keys must be strings (at {_where(path)}), got {type(key).__name__}"
                )
            child = f"{path}.{key}" if path else key
            out[unicodedata.normalize("NFC", key)] = _canonical(value[key], child)
        return {key: out[key] for key in sorted(out)}
    if isinstance(value, (list, tuple)):
        # Tuples are arrays: (name, version) pairs are the usual plugin input
        return [_canonical(item, f"{path}[{i}]") for i, item in enumerate(value)]
    raise CanonicalizationError(
        f"Non-JSON type {type(value).__name__} at {_where(path)}"
    )


def canonical_dumps(obj: Any) -> str:
    """Serialize ``obj`` as canonical JSON.

    Raises:
        CanonicalizationError: On floats, non-string keys or non-JSON types
    """
    return json.dumps(_canonical(obj), sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def hash_bytes(content: Union[str, bytes]) -> str:
    """sha256 digest of raw content; ``str`` is UTF-8 encoded first."""
    data = content.encode("utf-8") if isinstance(content, str) else content
    return DIGEST_PREFIX + hashlib.sha256(data).hexdigest()


def hash_canonical(obj: Any) -> str:
    """sha256 digest of the canonical JSON form of ``obj``."""
    return hash_bytes(canonical_dumps(obj))


def is_digest(value: Any) -> bool:
    """True when ``value`` has the shape of a digest produced here."""
    if not isinstance(value, str) or not value.startswith(DIGEST_PREFIX):
        return False
    hex_part = value[len(DIGEST_PREFIX):]
    return len(hex_part) == 64 and set(hex_part) <= _HEX_DIGITS
