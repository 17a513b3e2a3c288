"""
Batch Job Controller - execution callback service

Worker pods dispatched onto nodes phone their results home over HTTP.
This package admits those callbacks for tracked executions and ingests them.

Architecture:
- Each module is self-contained with clear interfaces
- Modules are completely replaceable
- All communication through defined interfaces

Modules:
- config: Typed controller configuration and pod naming
- registry: Executions currently authorized to call back
- kube: Kubernetes object lookup, events and owner resolution
- storage: Report persistence
- callback: HTTP callback and static file servers
"""

__version__ = "1.0.0"
