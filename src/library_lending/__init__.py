"""
Library Lending Package.

Book reservation and digital lending lifecycle of a library management
system, served over MCP.

Key Components:
- models: Pydantic snapshots of books, reservations and access grants
- database: SQLAlchemy schema, catalog store and reservation ledger
- lending: capacity guard, state machine, access gate and the lending service
- config: Configuration management with Pydantic v2
- resources: MCP resources (read-only endpoints)
- tools: MCP tools (operations with side effects)
"""

__version__ = "0.1.0"

__all__ = [
    "__version__",
]
