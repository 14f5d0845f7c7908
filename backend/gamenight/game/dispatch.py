"""Closed registry of supported games."""

from __future__ import annotations

from types import MappingProxyType
from typing import List, Mapping, Optional, Union

from ..errors import InvalidParameter
from .handler_base import GameHandler
from .handlers_avalon import AvalonHandler
from .handlers_codenames import CodenamesHandler
from .models import GameKind

HANDLERS: Mapping[GameKind, GameHandler] = MappingProxyType(
    {
        GameKind.AVALON: AvalonHandler(),
        GameKind.CODENAMES: CodenamesHandler(),
    }
)


def parse_kind(value: Union[str, GameKind, None]) -> Optional[GameKind]:
    if isinstance(value, GameKind):
        return value
    try:
        return GameKind((value or "").strip().lower())
    except ValueError:
        return None


def is_supported(value: Union[str, GameKind, None]) -> bool:
    return parse_kind(value) is not None


def handler_for(value: Union[str, GameKind]) -> GameHandler:
    kind = parse_kind(value)
    if kind is None:
        raise InvalidParameter(f"Game type '{value}' not supported")
    return HANDLERS[kind]


def supported_games() -> List[str]:
    return [kind.value for kind in HANDLERS]
