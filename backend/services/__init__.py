"""
Services package - Business logic layer.

This package contains all business logic services that operate on Django models
but are decoupled from the HTTP/WebSocket layer.

Modules:
    - order_management: Order lifecycle, claims, offers and cancellation
    - matching: Driver eligibility and capability matching
    - exceptions: Error taxonomy shared by every service
"""
