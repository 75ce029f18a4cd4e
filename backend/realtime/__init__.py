"""
Realtime app for WebSocket delivery of order events.

This app provides:
- A WebSocket consumer that joins a user's personal groups
- JWT authentication middleware for WebSocket connections
- Notification helpers queued after commit and delivered by Celery

Key Components:
    - consumers.py: EventsConsumer (customer/driver personal groups)
    - notifications.py: Order event notification helpers
    - tasks.py: At-least-once fan-out task

Usage:
    from realtime.notifications import notify_order_assigned, notify_order_cancelled
"""
