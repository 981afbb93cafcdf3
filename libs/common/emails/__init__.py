"""
Email package.

Modules:
- client: EmailClient for sending templated emails via the Notifications Service API

Templates are rendered by the Notifications Service; callers only pass the
template type and its data.
"""
