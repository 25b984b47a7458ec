# SPDX-License-Identifier: Apache-2.0
"""Layered overrides over a profile tree.

Overrides address the profile's JSON form with RFC 6901 pointers
(``/budgets/twist_cap``). They are applied to a deep copy of the payload and
the result is validated back into an :class:`EngineProfile`, so an override
can only produce a well-typed profile or fail with :class:`InvalidOverride`.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import ValidationError

from data_designer_narrative_ruleset.profile import EngineProfile, InvalidOverride, Override

logger = logging.getLogger(__name__)

OverrideLike = Override | Mapping[str, Any]

# ---------------------------------------------------------------------------
# JSON pointer resolution
# ---------------------------------------------------------------------------


def parse_pointer(path: str) -> list[str]:
    if not path.startswith("/"):
        raise InvalidOverride(f"Path {path!r} is not a JSON pointer")
    return [token.replace("~1", "/").replace("~0", "~") for token in path[1:].split("/")]


def _list_index(items: list[Any], token: str, path: str, *, allow_end: bool = False) -> int:
    if not token.isdigit() or (len(token) > 1 and token.startswith("0")):
        raise InvalidOverride(f"{path}: {token!r} is not a list index")
    index = int(token)
    limit = len(items) if allow_end else len(items) - 1
    if index > limit:
        raise InvalidOverride(f"{path}: index {index} is out of range")
    return index


def _walk(document: dict[str, Any], tokens: list[str], path: str, *, create: bool) -> Any:
    node: Any = document
    for token in tokens:
        if isinstance(node, dict):
            if token not in node:
                if not create:
                    raise InvalidOverride(f"{path}: {token!r} does not exist")
                node[token] = {}
            node = node[token]
        elif isinstance(node, list):
            node = node[_list_index(node, token, path)]
        else:
            raise InvalidOverride(f"{path}: cannot descend into {type(node).__name__}")
    return node


def _apply_to_dict(parent: dict[str, Any], key: str, override: Override) -> None:
    if override.op == "remove":
        if key not in parent:
            raise InvalidOverride(f"{override.path}: nothing to remove")
        del parent[key]
        return
    value = copy.deepcopy(override.value)
    if override.op == "add" and isinstance(parent.get(key), list) and isinstance(value, list):
        parent[key] = parent[key] + value
        return
    parent[key] = value


def _apply_to_list(parent: list[Any], token: str, override: Override) -> None:
    if token == "-":
        if override.op != "add":
            raise InvalidOverride(f"{override.path}: '-' is only valid for add")
        parent.append(copy.deepcopy(override.value))
        return
    if override.op == "remove" and not token.isdigit():
        # /forbidden_moves/villain_monologue lifts one value; absent is a no-op.
        if token in parent:
            parent.remove(token)
        return
    if override.op == "add":
        parent.insert(_list_index(parent, token, override.path, allow_end=True), copy.deepcopy(override.value))
        return
    index = _list_index(parent, token, override.path)
    if override.op == "remove":
        del parent[index]
    else:
        parent[index] = copy.deepcopy(override.value)


def _apply_one(document: dict[str, Any], override: Override) -> None:
    tokens = parse_pointer(override.path)
    if tokens == [""]:
        raise InvalidOverride(f"{override.path}: cannot override the whole profile")
    parent = _walk(document, tokens[:-1], override.path, create=override.op == "add")
    leaf = tokens[-1]
    if isinstance(parent, dict):
        _apply_to_dict(parent, leaf, override)
    elif isinstance(parent, list):
        _apply_to_list(parent, leaf, override)
    else:
        raise InvalidOverride(f"{override.path}: parent is a {type(parent).__name__}, not an object or list")


def _coerce_override(item: OverrideLike) -> Override:
    if isinstance(item, Override):
        return item
    try:
        return Override.model_validate(item)
    except ValidationError as exc:
        raise InvalidOverride(f"Malformed override {item!r}: {exc}") from exc


def _validate(document: dict[str, Any], context: str) -> EngineProfile:
    try:
        return EngineProfile.model_validate(document)
    except ValidationError as exc:
        raise InvalidOverride(f"{context} produced an invalid profile: {exc}") from exc


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def apply_overrides(profile: EngineProfile, overrides: Iterable[OverrideLike]) -> EngineProfile:
    """Apply ``overrides`` in order and return a new profile.

    ``replace`` sets an existing or creatable key, ``add`` also creates missing
    parents and extends lists, ``remove`` deletes a key, an index, or a named
    entry of a string list. ``profile`` is never modified.

    Raises:
        InvalidOverride: an override is malformed, its path does not resolve,
            or the patched profile fails validation.
    """
    patches = [_coerce_override(o) for o in overrides]
    if not patches:
        return profile
    document = copy.deepcopy(profile.to_payload())
    for patch in patches:
        _apply_one(document, patch)
    return _validate(document, "; ".join(p.describe() for p in patches))


def merge_ruleset(
    base: EngineProfile,
    engine_profile: EngineProfile | None,
    project_overrides: Iterable[OverrideLike] = (),
    run_overrides: Iterable[OverrideLike] = (),
) -> EngineProfile:
    """Resolve the ruleset for one run.

    Precedence, lowest first: ``base``, ``engine_profile`` (top-level field by
    field), ``project_overrides`` then ``run_overrides``, each in list order.
    """
    resolved = base
    if engine_profile is not None:
        document = base.to_payload()
        document.update(engine_profile.to_payload())
        resolved = _validate(document, "engine profile layer")
        logger.debug(f"Layered engine profile for {engine_profile.lane.value} over {base.lane.value} base")

    project = [_coerce_override(o) for o in project_overrides]
    run = [_coerce_override(o) for o in run_overrides]
    resolved = apply_overrides(resolved, project)
    resolved = apply_overrides(resolved, run)
    logger.debug(f"Resolved ruleset with {len(project)} project and {len(run)} run overrides")
    return resolved
