from __future__ import annotations

from typing import Any

from flask_socketio import SocketIO

from .registry import ConnectionRegistry, Session


class SocketIOTransport:
    """Room-scoped emission and membership on top of Flask-SocketIO.

    All calls name the target ``sid`` and namespace explicitly so they also
    work from background timers, outside of any request context.
    """

    def __init__(self, socketio: SocketIO, registry: ConnectionRegistry | None = None, namespace: str = "/") -> None:
        self.socketio = socketio
        self.registry = registry or ConnectionRegistry()
        self.namespace = namespace

    def session(self, sid: str) -> Session | None:
        return self.registry.get(sid)

    def bind(self, sid: str, room_code: str, name: str) -> None:
        self.socketio.server.enter_room(sid, room_code, namespace=self.namespace)
        self.registry.bind(sid, room_code, name)

    def unbind(self, sid: str, room_code: str) -> None:
        self.registry.unbind(sid, room_code)
        self.socketio.server.leave_room(sid, room_code, namespace=self.namespace)

    def broadcast(self, room_code: str, event: str, payload: Any = None) -> None:
        self.socketio.emit(event, payload, to=room_code, namespace=self.namespace)

    def unicast(self, sid: str, event: str, payload: Any = None) -> None:
        self.socketio.emit(event, payload, to=sid, namespace=self.namespace)

    def disconnect_and_remove(self, sid: str, room_code: str) -> None:
        self.unbind(sid, room_code)
        self.socketio.server.disconnect(sid, namespace=self.namespace)
