"""Space Rivals source package.

This package contains the orchestration components:
- config: Configuration loading and management
- ledger: Ledger client interface, typed transactions, Sui JSON-RPC adapter
- world: Persisted state, shared-object discovery, action executor
- agents: Phase state machine, action catalog, LLM decision adapter
- simulation: The two-agent round loop
"""

from __future__ import annotations

__all__: list[str] = []
