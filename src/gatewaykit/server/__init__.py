"""HTTP/WebSocket surface: router, WebSocket acceptor and listener."""

from gatewaykit.server.listener import DEFAULT_HOST, DEFAULT_PORT, GatewayServer
from gatewaykit.server.router import HttpHandler, RequestRouter, is_websocket_upgrade
from gatewaykit.server.websocket import ConnectionHandler, WebSocketAcceptor

__all__ = [
    "DEFAULT_HOST",
    "DEFAULT_PORT",
    "ConnectionHandler",
    "GatewayServer",
    "HttpHandler",
    "RequestRouter",
    "WebSocketAcceptor",
    "is_websocket_upgrade",
]
