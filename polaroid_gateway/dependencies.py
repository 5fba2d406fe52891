from __future__ import annotations

from fastapi import Request

from .state import GatewayState


def get_state(request: Request) -> GatewayState:
    return request.app.state.gateway_state
