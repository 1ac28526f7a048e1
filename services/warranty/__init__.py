"""
Warranty Service
================

Device warranty contracts, the repair-coverage limit model and the
repair claim workflow.

Components:
- services.coverage: pure coverage-limit calculator
- services.ledger: contracts, payments and the approval gate
- services.workflow: claim state machine
- services.reconciler: used-coverage reconciliation
- services.tracking: read models and the customer portal
- notifications: domain event sink

Version: 0.1.0
"""

__version__ = "0.1.0"
