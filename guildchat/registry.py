"""Thread-safe store of guilds and their channels."""

from __future__ import annotations

import threading
from contextlib import suppress
from dataclasses import dataclass, field

from guildchat.protocol import MAX_CHANNELS_PER_GUILD, MAX_GUILDS, MAX_NAME_LENGTH

DEFAULT_CHANNEL = "general"


class LimitReachedError(Exception):
    """Raised when no more guilds or channels can be created."""


@dataclass
class Channel:
    id: int
    name: str


@dataclass
class Guild:
    id: int
    name: str
    channels: list[Channel] = field(default_factory=list)


def _clip(name: str) -> str:
    return name[: MAX_NAME_LENGTH - 1]


class GuildRegistry:
    """Guilds, numbered in creation order, each holding numbered channels."""

    def __init__(self, max_guilds: int = MAX_GUILDS, max_channels: int = MAX_CHANNELS_PER_GUILD) -> None:
        self.max_guilds = max_guilds
        self.max_channels = max_channels
        self._guilds: list[Guild] = []
        self._lock = threading.Lock()

    def _guild(self, guild_id: int) -> Guild:
        if not 0 <= guild_id < len(self._guilds):
            raise KeyError(f"no guild with id {guild_id}")
        return self._guilds[guild_id]

    def find_or_create_guild(self, name: str) -> int:
        """Return the id of the named guild, creating it with a default channel."""
        name = _clip(name)
        with self._lock:
            for guild in self._guilds:
                if guild.name == name:
                    return guild.id
            if len(self._guilds) >= self.max_guilds:
                raise LimitReachedError(f"guild limit of {self.max_guilds} reached")
            guild = Guild(id=len(self._guilds), name=name)
            self._guilds.append(guild)
        with suppress(LimitReachedError):
            self.find_or_create_channel(guild.id, DEFAULT_CHANNEL)
        return guild.id

    def find_or_create_channel(self, guild_id: int, name: str) -> int:
        """Return the id of the named channel in a guild, creating it if needed."""
        name = _clip(name)
        with self._lock:
            guild = self._guild(guild_id)
            for channel in guild.channels:
                if channel.name == name:
                    return channel.id
            if len(guild.channels) >= self.max_channels:
                raise LimitReachedError(f"channel limit of {self.max_channels} reached")
            channel = Channel(id=len(guild.channels), name=name)
            guild.channels.append(channel)
            return channel.id

    def find_guild(self, name: str) -> int | None:
        """Return the id of an existing guild, or ``None``."""
        with self._lock:
            return next((guild.id for guild in self._guilds if guild.name == name), None)

    def guild_names(self) -> list[str]:
        with self._lock:
            return [guild.name for guild in self._guilds]

    def channel_names(self, guild_id: int) -> list[str]:
        with self._lock:
            return [channel.name for channel in self._guild(guild_id).channels]