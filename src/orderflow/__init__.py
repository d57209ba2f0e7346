"""
Orderflow - saga-style order processing over a background job queue.

Subpackages:
- orderflow.core: errors, logging, configuration, store, events, ORM
- orderflow.execution: messages, handler registry, queue clients, workers
- orderflow.orchestration: chain builder and orchestrator
- orderflow.inventory: atomic stock reservation
- orderflow.orders: order service and the order-processing tasks
"""

__version__ = "0.1.0"
