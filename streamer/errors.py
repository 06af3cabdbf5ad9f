"""
Exceptions raised by the video player.

Startup errors (ConfigError, BindError, NoRouteFound) end the process.
MalformedRange only ends the request that carried the bad header.
"""


class PlayerError(Exception):
    """Base class for all video player errors."""


class ConfigError(PlayerError):
    """Invalid command line configuration (port, media path)."""


class BindError(PlayerError):
    """The listening socket could not be bound."""


class NoRouteFound(PlayerError):
    """No local IPv4 address shares a subnet with the default gateway."""


class GatewayNotFound(PlayerError):
    """The default gateway could not be discovered on this host."""


class MalformedRange(PlayerError, ValueError):
    """The Range header could not be parsed."""
