"""Script results: from the page's object graph to native Python values.

Two stages:

1. ``decode_remote_value`` rebuilds the graph that ``ENCODE_RESULT_JS``
   serialized in the page. JS objects reachable twice become the same
   Python object, JS cycles become Python cycles, and DOM nodes become
   remote-object references (``{"subtype": "node", "objectId": ...}``).
2. ``unwrap_script_result`` turns such a Remote Value tree into the value
   handed to callers, replacing node references with node handles.

Both walks are iterative (explicit stacks) and keyed by identity.
"""

from __future__ import annotations

import enum
from collections.abc import Callable, Iterator
from typing import Any

# Runs with `this` bound to the evaluation result (an object).
# Every visited object gets a preorder id; repeats are emitted as {"$ref": id}.
ENCODE_RESULT_JS = """
function() {
  const seen = new Map();
  const nodes = [];
  const isListLike = (v) =>
    Array.isArray(v) ||
    (typeof NodeList !== 'undefined' && v instanceof NodeList) ||
    (typeof HTMLCollection !== 'undefined' && v instanceof HTMLCollection);
  const encode = (v) => {
    if (v === undefined || typeof v === 'function' || typeof v === 'symbol') return null;
    if (typeof v === 'bigint') return v.toString();
    if (typeof v === 'number') return Number.isFinite(v) ? v : null;
    if (v === null || typeof v !== 'object') return v;
    if (v instanceof Date) return v.toISOString();
    if (seen.has(v)) return {"$ref": seen.get(v)};
    const id = seen.size;
    seen.set(v, id);
    if (typeof Node !== 'undefined' && v instanceof Node) {
      nodes.push(v);
      return {"$id": id, "$node": nodes.length - 1};
    }
    if (typeof Window !== 'undefined' && v instanceof Window) return {"$id": id, "$object": {}};
    if (isListLike(v)) {
      const items = [];
      for (let i = 0; i < v.length; i++) items.push(encode(v[i]));
      return {"$id": id, "$array": items};
    }
    const out = {};
    for (const key of Object.keys(v)) {
      let item;
      try { item = v[key]; } catch (e) { item = null; }
      out[key] = encode(item);
    }
    return {"$id": id, "$object": out};
  };
  const tree = encode(this);
  return {tree: tree, nodes: nodes};
}
"""


def _node_reference(object_id: str) -> dict[str, Any]:
    return {"type": "object", "subtype": "node", "objectId": object_id}


def decode_remote_value(encoded: Any, node_object_ids: list[str]) -> Any:
    """Rebuild an ``ENCODE_RESULT_JS`` tree, preserving shared identity."""
    built: dict[int, Any] = {}

    def make(item: Any) -> tuple[Any, Iterator[tuple[Any, Any]] | None]:
        if not isinstance(item, dict):
            return item, None
        if "$ref" in item:
            return built[item["$ref"]], None
        ident = item.get("$id")
        if "$node" in item:
            idx = int(item["$node"])
            ref = _node_reference(node_object_ids[idx]) if 0 <= idx < len(node_object_ids) else None
            built[ident] = ref
            return ref, None
        if "$array" in item:
            out_list: list[Any] = []
            built[ident] = out_list
            return out_list, ((None, child) for child in item["$array"])
        out_map: dict[str, Any] = {}
        built[ident] = out_map
        return out_map, iter((item.get("$object") or {}).items())

    root, children = make(encoded)
    if children is None:
        return root

    # Preorder: a $ref can only point at an object already visited in page order.
    stack: list[tuple[Any, Iterator[tuple[Any, Any]]]] = [(root, children)]
    while stack:
        container, it = stack[-1]
        try:
            key, child = next(it)
        except StopIteration:
            stack.pop()
            continue
        value, grandchildren = make(child)
        if isinstance(container, list):
            container.append(value)
        else:
            container[key] = value
        if grandchildren is not None:
            stack.append((value, grandchildren))
    return root


class RemoteKind(enum.Enum):
    SCALAR = "scalar"
    SEQUENCE = "sequence"
    MAPPING = "mapping"
    NODE = "node"


def classify(value: Any) -> RemoteKind:
    if isinstance(value, list):
        return RemoteKind.SEQUENCE
    if isinstance(value, dict):
        if value.get("subtype") == "node" and value.get("objectId"):
            return RemoteKind.NODE
        return RemoteKind.MAPPING
    return RemoteKind.SCALAR


def unwrap_script_result(value: Any, make_node: Callable[[str], Any]) -> Any:
    """Convert a Remote Value tree, wrapping node references with ``make_node``.

    The memo is keyed by ``id()`` of the remote value and keeps the source
    object alive, so a structure reachable twice is converted once and a
    cycle resolves to the container being filled.
    """
    memo: dict[int, tuple[Any, Any]] = {}
    pending: list[tuple[Any, Any]] = []

    def convert(item: Any) -> Any:
        kind = classify(item)
        if kind is RemoteKind.SCALAR:
            return item
        seen = memo.get(id(item))
        if seen is not None:
            return seen[1]
        if kind is RemoteKind.NODE:
            out: Any = make_node(item["objectId"])
        elif kind is RemoteKind.SEQUENCE:
            out = []
            pending.append((item, out))
        elif kind is RemoteKind.MAPPING:
            out = {}
            pending.append((item, out))
        else:  # pragma: no cover - RemoteKind is closed
            raise AssertionError(kind)
        memo[id(item)] = (item, out)
        return out

    result = convert(value)
    while pending:
        source, target = pending.pop()
        if isinstance(target, list):
            target.extend(convert(child) for child in source)
        else:
            for key, child in source.items():
                target[key] = convert(child)
    return result


__all__ = [
    "ENCODE_RESULT_JS",
    "RemoteKind",
    "classify",
    "decode_remote_value",
    "unwrap_script_result",
]
