"""Service layer for OrderRelay.

Routing, matching, placement and order lifecycle operations. Import the
individual modules directly, e.g. ``from src.services.order_service import
OrderService``.
"""
