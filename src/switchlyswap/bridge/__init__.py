"""Switchly node client and outbound queue matching."""

from switchlyswap.bridge.actions import ActionState, ActionType, BridgeAction, BridgeActionProbe
from switchlyswap.bridge.client import SwitchlyClient

__all__ = [
    "ActionState",
    "ActionType",
    "BridgeAction",
    "BridgeActionProbe",
    "SwitchlyClient",
]
