"""
stateflow_config -- declarative workflow definitions.

Responsibility:
    Loads YAML workflow definitions (which gates and actions run for which
    state/delta shapes, plus lock behaviour) and adapts them to the kernel
    ``ConfigurationProvider`` and ``LockKeyProvider`` contracts.

Architecture position:
    Sits above ``stateflow_kernel`` and below ``stateflow_services``.  The
    kernel MUST NEVER import from this package.
"""

from stateflow_config.loader import (
    compute_checksum,
    load_definition,
    load_yaml_file,
    parse_definition,
)
from stateflow_config.provider import (
    DefinitionConfigurationProvider,
    template_lock_key_provider,
)
from stateflow_config.registry import ComponentRegistry
from stateflow_config.schema import TransitionRuleDef, WorkflowDefinition

__all__ = [
    "ComponentRegistry",
    "DefinitionConfigurationProvider",
    "TransitionRuleDef",
    "WorkflowDefinition",
    "compute_checksum",
    "load_definition",
    "load_yaml_file",
    "parse_definition",
    "template_lock_key_provider",
]
