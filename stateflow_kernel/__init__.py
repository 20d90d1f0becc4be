"""
StateFlow Kernel

Pure building blocks for a state-transition workflow engine:
- Typed gate results and action outcomes
- An append-only transition ledger (TransitionContext)
- Pluggable mutual-exclusion lock backends
- Self-verifying snapshots for pause/resume
"""

__version__ = "0.1.0"
