"""Accessor over the loosely-typed trees returned by the platform collaborator.

Upstream payloads are untyped and unversioned: the same logical field can live
under a mapping key on one response and an object attribute on another, and
any level of a path may be missing. ``RawNode`` treats absence as an ordinary
outcome. Every read returns ``None`` (or an empty node/list) instead of raising
``KeyError``/``IndexError``/``AttributeError``.

Errors raised by the underlying objects themselves (for example a lazily
computed property) are *not* swallowed here; the field resolver decides what a
failing read means.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, cast

PathStep = str | int

_SCALAR_TYPES = (str, bytes, bytearray, int, float, bool)


class RawNode:
    __slots__ = ("_value",)

    def __init__(self, value: object = None) -> None:
        if isinstance(value, RawNode):
            value = value.value
        self._value = value

    @classmethod
    def wrap(cls, value: object) -> RawNode:
        if isinstance(value, RawNode):
            return value
        return cls(value)

    @classmethod
    def empty(cls) -> RawNode:
        return cls(None)

    @property
    def value(self) -> object:
        return self._value

    @property
    def is_absent(self) -> bool:
        return self._value is None

    def __bool__(self) -> bool:
        return self._value is not None

    def __repr__(self) -> str:
        return f"RawNode({type(self._value).__name__})"

    def get(self, *path: PathStep) -> Any:
        current: object = self._value
        for step in path:
            if current is None:
                return None
            current = _read_step(current, step)
        return current

    def has(self, *path: PathStep) -> bool:
        return self.get(*path) is not None

    def child(self, *path: PathStep) -> RawNode:
        return RawNode(self.get(*path))

    def children(self, *path: PathStep) -> list[RawNode]:
        found = self.get(*path)
        if isinstance(found, Sequence) and not isinstance(found, _SCALAR_TYPES):
            return [RawNode(item) for item in cast(Sequence[object], found) if item is not None]
        return []

    def string(self, *path: PathStep) -> str | None:
        found = self.get(*path)
        if isinstance(found, str) and found.strip():
            return found.strip()
        return None

    def text(self, *path: PathStep) -> str | None:
        """Read display text that may be a plain string or a text container.

        Text containers come as ``{"text": ...}``, ``{"simple_text": ...}`` or
        ``{"runs": [{"text": ...}, ...]}``, either as mappings or as objects.
        """
        return _coerce_text(self.get(*path))

    def integer(self, *path: PathStep) -> int | None:
        return _coerce_int(self.get(*path))

    def boolean(self, *path: PathStep) -> bool | None:
        return _coerce_bool(self.get(*path))


def _read_step(current: object, step: PathStep) -> object:
    if isinstance(step, int):
        if isinstance(current, Sequence) and not isinstance(current, _SCALAR_TYPES):
            items = cast(Sequence[object], current)
            if -len(items) <= step < len(items):
                return items[step]
        return None

    if isinstance(current, Mapping):
        return cast(Mapping[object, object], current).get(step)
    if isinstance(current, _SCALAR_TYPES) or isinstance(current, Sequence):
        return None
    if step.startswith("_"):
        return None
    found = getattr(current, step, None)
    if callable(found):
        return None
    return found


def _coerce_text(raw_value: object) -> str | None:
    if raw_value is None:
        return None
    if isinstance(raw_value, str):
        compact = raw_value.strip()
        return compact or None
    if isinstance(raw_value, _SCALAR_TYPES):
        return None

    node = RawNode(raw_value)
    for key in ("text", "simple_text", "content"):
        candidate = node.get(key)
        if isinstance(candidate, str) and candidate.strip():
            return candidate.strip()

    runs = node.children("runs")
    if runs:
        parts: list[str] = []
        for run in runs:
            run_text = run.get("text")
            if isinstance(run_text, str):
                parts.append(run_text)
        return "".join(parts).strip() or None
    return None


def _coerce_int(raw_value: object) -> int | None:
    if isinstance(raw_value, bool):
        return None
    if isinstance(raw_value, int):
        return raw_value
    if isinstance(raw_value, float):
        return int(raw_value)
    if isinstance(raw_value, str):
        try:
            return int(raw_value.strip())
        except ValueError:
            return None
    return None


def _coerce_bool(raw_value: object) -> bool | None:
    if isinstance(raw_value, bool):
        return raw_value
    if isinstance(raw_value, str):
        normalized = raw_value.strip().lower()
        if normalized in {"1", "true", "yes", "on"}:
            return True
        if normalized in {"0", "false", "no", "off"}:
            return False
    if isinstance(raw_value, int):
        return bool(raw_value)
    return None
