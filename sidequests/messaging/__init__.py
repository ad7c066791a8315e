"""Redis-backed WebSocket chat and list consumer."""