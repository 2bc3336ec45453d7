"""Reassembly of tool calls from fragments buffered during a turn.

Providers split a tool call across many frames.  The first fragment
usually carries ``id`` and ``function.name``; later ones carry only an
``index`` and a slice of the ``function.arguments`` JSON string.  Some
providers never send an id, some send a placeholder, and a few send the
arguments as an already-structured object.  ``merge_fragments`` groups
fragments by a canonical correlation key and folds each group into one
``ToolCall``.
"""

from __future__ import annotations

import copy
import json
import logging
from dataclasses import dataclass
from typing import Any

from streamcall.types import ToolCall, ToolCallFragment

_logger = logging.getLogger(__name__)

_PLACEHOLDER_IDS = (None, "", "unknown")


def is_placeholder_id(value: Any) -> bool:
    return value in _PLACEHOLDER_IDS


# ---------------------------------------------------------------------------
# Fragment extraction
# ---------------------------------------------------------------------------

def to_fragment(entry: dict[str, Any], position: int) -> ToolCallFragment:
    """Normalize one raw tool-call entry into a ``ToolCallFragment``.

    Accepts the nested ``{"function": {"name", "arguments"}}`` shape and the
    flat ``{"function": "<name>", "arguments": ...}`` shape.
    """
    function = entry.get("function")
    if isinstance(function, dict):
        name = function.get("name")
        arguments = function.get("arguments")
    else:
        name = function if isinstance(function, str) else entry.get("name")
        arguments = entry.get("arguments")

    index = entry.get("index")
    if not isinstance(index, int) or isinstance(index, bool):
        index = None

    call_id = entry.get("id")
    if call_id is not None and not isinstance(call_id, str):
        call_id = str(call_id)

    return ToolCallFragment(
        key="",
        name=name or None,
        arguments=arguments,
        index=index,
        call_id=None if is_placeholder_id(call_id) else call_id,
        position=position,
    )


# ---------------------------------------------------------------------------
# Argument merging
# ---------------------------------------------------------------------------

def _is_empty(value: Any) -> bool:
    return value is None or value == "" or value == {}


def _parse_object(text: str) -> dict[str, Any] | None:
    try:
        value = json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return None
    return value if isinstance(value, dict) else None


def deep_merge(target: dict[str, Any], source: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge *source* into *target* in place and return it."""
    for key, value in source.items():
        current = target.get(key)
        if isinstance(value, dict) and isinstance(current, dict):
            deep_merge(current, value)
        else:
            target[key] = copy.deepcopy(value)
    return target


def merge_arguments(current: Any, incoming: Any) -> Any:
    """Combine the arguments accumulated so far with a new fragment."""
    if _is_empty(incoming):
        return current
    if _is_empty(current):
        return copy.deepcopy(incoming)

    if isinstance(current, str) and isinstance(incoming, str):
        return current + incoming
    if isinstance(current, dict) and isinstance(incoming, dict):
        return deep_merge(current, incoming)
    if isinstance(current, str) and isinstance(incoming, dict):
        parsed = _parse_object(current)
        if parsed is None:
            return copy.deepcopy(incoming)
        return deep_merge(parsed, incoming)
    if isinstance(current, dict) and isinstance(incoming, str):
        parsed = _parse_object(incoming)
        if parsed is None:
            return current
        return deep_merge(current, parsed)
    return copy.deepcopy(incoming)


def finalize_arguments(value: Any) -> dict[str, Any]:
    """Turn accumulated arguments into a mapping.

    Unparseable text is preserved as ``{"raw": text}`` so the tool still
    sees what the model produced.
    """
    if _is_empty(value):
        return {}
    if isinstance(value, dict):
        return value
    if isinstance(value, str):
        if not value.strip():
            return {}
        parsed = _parse_object(value)
        if parsed is None:
            _logger.warning("Unparseable tool arguments, keeping raw: %s", value[:200])
            return {"raw": value}
        return parsed
    return {"raw": json.dumps(value, ensure_ascii=False)}


def normalize_arguments(arguments: dict[str, Any]) -> dict[str, Any]:
    """Splice the first nested mapping into the top level.

    Models sometimes wrap all parameters in one object
    (``{"params": {"city": "x"}}``).  Only the first nested mapping, in
    insertion order, is flattened; its entries overwrite same-named
    top-level keys.  Everything else passes through unchanged.
    """
    result = dict(arguments)
    for key, value in arguments.items():
        if isinstance(value, dict):
            del result[key]
            result.update(value)
            break
    return result


# ---------------------------------------------------------------------------
# Merging
# ---------------------------------------------------------------------------

@dataclass
class _Pending:
    key: str
    name: str | None = None
    arguments: Any = None

    def absorb(self, name: str | None, arguments: Any) -> None:
        if name:
            self.name = name
        self.arguments = merge_arguments(self.arguments, arguments)


class FragmentMerger:
    """Groups fragments by correlation key, preserving first-seen order."""

    def __init__(self) -> None:
        self._pending: dict[str, _Pending] = {}
        self._index_ids: dict[int, str] = {}

    def add(self, fragment: ToolCallFragment) -> str:
        """Merge *fragment* and return the key it was filed under."""
        key = self._resolve_key(fragment)
        fragment.key = key
        pending = self._pending.get(key)
        if pending is None:
            pending = self._pending[key] = _Pending(key=key)
        pending.absorb(fragment.name, fragment.arguments)
        return key

    def calls(self) -> list[ToolCall]:
        result: list[ToolCall] = []
        for pending in self._pending.values():
            if not pending.name:
                _logger.warning("Dropping tool call %s without a function name", pending.key)
                continue
            result.append(
                ToolCall(
                    id=pending.key,
                    function=pending.name,
                    arguments=finalize_arguments(pending.arguments),
                )
            )
        return result

    def _resolve_key(self, fragment: ToolCallFragment) -> str:
        index, call_id = fragment.index, fragment.call_id

        if index is None:
            return call_id or f"tool_{fragment.position}"

        known = self._index_ids.get(index)
        if call_id is None:
            return known or f"index_{index}"
        if known is not None and known != call_id:
            _logger.debug("Index %d already bound to %s, ignoring id %s", index, known, call_id)
            return known

        self._index_ids[index] = call_id
        self._fold_provisional(f"index_{index}", call_id)
        return call_id

    def _fold_provisional(self, provisional: str, real: str) -> None:
        """Re-file fragments gathered under ``index_<n>`` under the real id."""
        pending = self._pending.get(provisional)
        if pending is None:
            return
        if real in self._pending:
            existing = self._pending.pop(provisional)
            self._pending[real].absorb(existing.name, existing.arguments)
            return
        # rename in place so the call keeps its first-seen position
        pending.key = real
        self._pending = {
            (real if k == provisional else k): v for k, v in self._pending.items()
        }


def merge_fragments(cache: list[list[dict[str, Any]]]) -> list[ToolCall]:
    """Merge a turn's fragment cache into finished tool calls.

    Parameters
    ----------
    cache:
        One list of raw tool-call entries per frame, in arrival order.

    Returns
    -------
    list[ToolCall]
        One call per correlation key in first-seen order.  Calls that never
        received a function name are omitted.
    """
    merger = FragmentMerger()
    for frame in cache:
        for position, entry in enumerate(frame):
            if not isinstance(entry, dict):
                _logger.warning("Skipping non-object tool call fragment: %r", entry)
                continue
            merger.add(to_fragment(entry, position))
    return merger.calls()
