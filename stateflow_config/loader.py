"""
Workflow definition loader (``stateflow_config.loader``).

Responsibility
--------------
Loads a YAML workflow file and parses it into the frozen dataclasses of
``stateflow_config.schema``.

Invariants enforced
-------------------
* Every parse error raises ``InvalidDefinitionError`` naming the source
  file and the offending key; no silent defaults for required fields.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the raw
  document, carried on the definition for change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.

Expected document shape::

    workflow:
      name: order_lifecycle
      version: 1
    lock:
      strategy: wait
      ttl_seconds: 60
      wait_timeout_seconds: 5
      poll_interval_seconds: 0.2
      key_template: "order:{id}"
    rules:
      - name: ship_order
        match_state: {status: [paid, packed]}
        match_delta: {status: shipped}
        delta_fields: [tracking_number]
        gates: [order_is_paid]
        actions: [reserve_stock, notify_customer]
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from stateflow_config.schema import TransitionRuleDef, WorkflowDefinition
from stateflow_kernel.domain.lock import LockSettings
from stateflow_kernel.exceptions import InvalidDefinitionError
from stateflow_kernel.logging_config import get_logger

logger = get_logger("config.loader")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def _names(value: Any, source: str, key: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise InvalidDefinitionError(source, f"'{key}' must be a list of names")
    return tuple(value)


def _matchers(value: Any, source: str, key: str) -> tuple[tuple[str, Any], ...]:
    if value is None:
        return ()
    if not isinstance(value, dict):
        raise InvalidDefinitionError(source, f"'{key}' must be a mapping")
    return tuple(
        (field_name, tuple(expected) if isinstance(expected, list) else expected)
        for field_name, expected in value.items()
    )


def parse_rule(data: dict[str, Any], source: str = "<memory>") -> TransitionRuleDef:
    """Parse one entry of ``rules``."""
    if not isinstance(data, dict) or "name" not in data:
        raise InvalidDefinitionError(source, "every rule needs a 'name'")
    name = data["name"]
    return TransitionRuleDef(
        name=name,
        match_state=_matchers(data.get("match_state"), source, f"{name}.match_state"),
        match_delta=_matchers(data.get("match_delta"), source, f"{name}.match_delta"),
        delta_fields=_names(data.get("delta_fields"), source, f"{name}.delta_fields"),
        transition_gates=_names(data.get("gates"), source, f"{name}.gates"),
        actions=_names(data.get("actions"), source, f"{name}.actions"),
    )


def parse_lock(data: dict[str, Any] | None, source: str = "<memory>") -> LockSettings:
    """Parse the ``lock`` section into LockSettings."""
    if not data:
        return LockSettings()
    kwargs = {
        key: data[key]
        for key in ("strategy", "ttl_seconds", "wait_timeout_seconds", "poll_interval_seconds")
        if key in data
    }
    try:
        return LockSettings(**kwargs)
    except ValueError as exc:
        raise InvalidDefinitionError(source, f"lock: {exc}") from exc


def parse_definition(data: dict[str, Any], source: str = "<memory>") -> WorkflowDefinition:
    """
    Parse a whole workflow document.

    Raises:
        InvalidDefinitionError: missing ``workflow.name``, malformed
            sections, duplicate rule names or invalid lock settings.
    """
    workflow = data.get("workflow") or {}
    if "name" not in workflow:
        raise InvalidDefinitionError(source, "missing 'workflow.name'")

    rules_raw = data.get("rules") or []
    if not isinstance(rules_raw, list):
        raise InvalidDefinitionError(source, "'rules' must be a list")
    rules = tuple(parse_rule(r, source) for r in rules_raw)

    seen: set[str] = set()
    for rule in rules:
        if rule.name in seen:
            raise InvalidDefinitionError(source, f"duplicate rule name '{rule.name}'")
        seen.add(rule.name)

    lock_data = data.get("lock") or {}
    return WorkflowDefinition(
        name=workflow["name"],
        version=int(workflow.get("version", 1)),
        lock=parse_lock(lock_data, source),
        lock_key_template=lock_data.get("key_template"),
        rules=rules,
        checksum=compute_checksum(data),
    )


def load_definition(path: Path | str) -> WorkflowDefinition:
    """Load and parse a workflow YAML file."""
    path = Path(path)
    definition = parse_definition(load_yaml_file(path), str(path))
    logger.info(
        "workflow_definition_loaded",
        extra={
            "workflow": definition.name,
            "version": definition.version,
            "checksum": definition.checksum,
            "rule_count": len(definition.rules),
            "source": str(path),
        },
    )
    return definition
