"""
Relay Routers - FastAPI routers mounted by main.py.

- chat: Live chat WebSocket endpoint
"""
