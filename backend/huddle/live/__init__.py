"""Live channel: connection registry, message routing and the Socket.IO namespace."""
