"""Delivery channel: REST transport and the background batching writer.

Import from submodules directly:
- ``from opik_tracing._delivery._models import ...``
- ``from opik_tracing._delivery._writer import ...``
"""
