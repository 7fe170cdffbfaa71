"""Proxy configuration: the port to listen on and the target to forward to."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple

LOCALHOST = "localhost"
MAX_PORT = 65535


class ConfigError(ValueError):
    """Raised when a proxy configuration or target is invalid."""


def _check_port(value: Any, what: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{what} must be an integer, not {type(value).__name__}")
    if not 0 <= value <= MAX_PORT:
        raise ConfigError(f"{what} must be between 0 and {MAX_PORT}, got {value}")
    return value


@dataclass(frozen=True)
class ForwardTarget:
    """Where incoming connections are forwarded to."""

    domain: str = LOCALHOST
    port: int = 0

    def __post_init__(self) -> None:
        if not isinstance(self.domain, str):
            raise ConfigError(f"domain must be a string, not {type(self.domain).__name__}")
        _check_port(self.port, "port")

    def is_external(self) -> bool:
        """True when the target is not on this machine."""
        return self.domain != LOCALHOST

    def to_dict(self) -> dict[str, Any]:
        return {"domain": self.domain, "port": self.port}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ForwardTarget":
        try:
            domain = data["domain"]
            port = data["port"]
        except KeyError as exc:
            raise ConfigError(f"missing field {exc.args[0]!r}") from exc
        except TypeError as exc:
            raise ConfigError("forward target must be a mapping") from exc
        return cls(domain=domain, port=port)


@dataclass(frozen=True)
class ProxyConfig:
    """A proxy setting: either off (no route) or a listen port with a target."""

    route: Optional[Tuple[int, ForwardTarget]] = None

    def __post_init__(self) -> None:
        if self.route is None:
            return
        try:
            listen_port, target = self.route
        except (TypeError, ValueError) as exc:
            raise ConfigError("route must be a (listen_port, target) pair") from exc
        _check_port(listen_port, "listen port")
        if not isinstance(target, ForwardTarget):
            raise ConfigError("route target must be a ForwardTarget")

    def is_off(self) -> bool:
        return self.route is None

    def is_on(self) -> bool:
        return self.route is not None

    def listen_port(self) -> Optional[int]:
        return None if self.route is None else self.route[0]

    def forward_target(self) -> Optional[ForwardTarget]:
        return None if self.route is None else self.route[1]

    def validate(self) -> None:
        """Raise ConfigError if the proxy would forward to its own listening port."""
        target = self.forward_target()
        listen_port = self.listen_port()
        if (
            target is not None
            and listen_port is not None
            and target.domain == LOCALHOST
            and target.port == listen_port
        ):
            raise ConfigError("Cannot forward to listening port")