"""Chat server: clients join guild channels and exchange messages."""

from __future__ import annotations

import argparse
import logging
import socket
import sys
import threading
from contextlib import suppress
from dataclasses import dataclass
from typing import Any, Callable

from guildchat.protocol import (
    MAX_BUFFER_SIZE,
    MAX_CLIENTS,
    MAX_NAME_LENGTH,
    MAX_USERNAME_SIZE,
    PORT,
    first_line,
    strip_one_space,
    take_words,
)
from guildchat.registry import GuildRegistry, LimitReachedError

log = logging.getLogger(__name__)

WELCOME = "INFO Welcome! Please set your username with NAME <username>.\n"
SERVER_FULL = "ERROR Server is full, try again later.\n"
UNEXPECTED = "ERROR An unexpected error occurred, try again later.\n"


class ServerFullError(Exception):
    """Raised when every client slot is taken."""


@dataclass(eq=False)
class Client:
    """A connected client and where it currently chats."""

    slot: int
    connection: Any
    address: Any
    username: str = "Anonymous"
    guild_id: int | None = None
    channel_id: int | None = None
    active: bool = True

    @property
    def in_channel(self) -> bool:
        return self.guild_id is not None and self.channel_id is not None

    @property
    def peer(self) -> str:
        if isinstance(self.address, tuple) and len(self.address) >= 2:
            return f"{self.address[0]}:{self.address[1]}"
        return str(self.address)


def _limit(message: str) -> str:
    return message[: MAX_BUFFER_SIZE - 1]


class ChatServer:
    """Tracks clients, executes their commands and relays channel messages."""

    def __init__(
        self,
        host: str = "",
        port: int = PORT,
        max_clients: int = MAX_CLIENTS,
        registry: GuildRegistry | None = None,
    ) -> None:
        self.host = host
        self.port = port
        self.max_clients = max_clients
        self.registry = registry if registry is not None else GuildRegistry()
        self.server_address: tuple | None = None
        self._clients: dict[int, Client] = {}
        self._lock = threading.Lock()
        self._handlers: dict[str, Callable[[Client, str | None], None]] = {
            "NAME": self._cmd_name,
            "CREATEGUILD": self._cmd_create_guild,
            "JOIN": self._cmd_join,
            "MSG": self._cmd_msg,
            "LISTGUILDS": self._cmd_list_guilds,
            "LISTCHANNELS": self._cmd_list_channels,
            "LEAVE": self._cmd_leave,
            "QUIT": self._cmd_quit,
        }

    def register(self, connection: Any, address: Any) -> Client:
        """Place a new connection in the lowest free slot."""
        with self._lock:
            if len(self._clients) >= self.max_clients:
                raise ServerFullError(f"all {self.max_clients} client slots are in use")
            slot = next(i for i in range(self.max_clients) if i not in self._clients)
            client = Client(slot=slot, connection=connection, address=address)
            self._clients[slot] = client
        return client

    def unregister(self, client: Client) -> None:
        """Close a client's connection and free its slot."""
        with self._lock:
            if self._clients.get(client.slot) is not client:
                return
            del self._clients[client.slot]
            client.active = False
            with suppress(OSError):
                client.connection.close()
        log.info("Client %d disconnected and slot freed", client.slot)

    @staticmethod
    def _deliver(client: Client, message: str) -> None:
        try:
            client.connection.sendall(message.encode("utf-8"))
        except OSError as exc:
            log.error("send: %s", exc)

    def send(self, client: Client, message: str) -> None:
        with self._lock:
            if client.active:
                self._deliver(client, message)

    def broadcast(self, sender: Client, message: str) -> None:
        """Send a message to everyone in the sender's guild and channel."""
        with self._lock:
            if not sender.in_channel:
                return
            for client in self._clients.values():
                if client.guild_id == sender.guild_id and client.channel_id == sender.channel_id:
                    self._deliver(client, message)

    def execute(self, client: Client, line: str) -> None:
        """Run one command line received from a client."""
        words, rest = take_words(line, 1)
        if not words:
            log.info("Client %d sent an empty command", client.slot)
            return
        handler = self._handlers.get(words[0])
        if handler is None:
            self.send(client, "ERROR Unknown command.\n")
        else:
            handler(client, rest)

    def _cmd_name(self, client: Client, rest: str | None) -> None:
        words, _ = take_words(rest or "", 1)
        if not words or len(words[0].encode("utf-8")) >= MAX_USERNAME_SIZE:
            self.send(client, "ERROR NAME command requires an valid username.\n")
            return
        name = words[0]
        with self._lock:
            taken = any(other.username == name for other in self._clients.values())
            if not taken:
                client.username = name
        if taken:
            self.send(client, "ERROR Username already taken.\n")
        else:
            self.send(client, _limit(f"INFO Username set to {name}.\n"))

    def _cmd_create_guild(self, client: Client, rest: str | None) -> None:
        words, _ = take_words(rest or "", 1)
        if not words or len(words[0]) >= MAX_NAME_LENGTH:
            self.send(client, "ERROR CREATEGUILD command requires a valid guild name.\n")
            return
        name = words[0]
        try:
            self.registry.find_or_create_guild(name)
        except LimitReachedError:
            self.send(client, "ERROR Guild limit reached.\n")
            return
        self.send(client, _limit(f"INFO Guild '{name}' created. Default channel '#general' is available.\n"))

    def _cmd_join(self, client: Client, rest: str | None) -> None:
        words, _ = take_words(rest or "", 2)
        if len(words) < 2:
            self.send(client, "ERROR JOIN command requires a guild name and a channel name.\n")
            return
        guild_name, channel_name = words
        try:
            guild_id = self.registry.find_or_create_guild(guild_name)
        except LimitReachedError:
            self.send(client, "ERROR Could not create or join guild, limit reached.\n")
            return
        try:
            channel_id = self.registry.find_or_create_channel(guild_id, channel_name)
        except LimitReachedError:
            self.send(client, "ERROR Could not create or join channel, limit reached.\n")
            return
        with self._lock:
            client.guild_id = guild_id
            client.channel_id = channel_id
        self.send(client, _limit(f"INFO Joined guild '{guild_name}' and channel '{channel_name}'.\n"))

    def _cmd_msg(self, client: Client, rest: str | None) -> None:
        if rest is None:
            self.send(client, "ERROR MSG command requires a message payload.\n")
            return
        payload = strip_one_space(rest)
        with self._lock:
            joined = client.in_channel
            guild_id, channel_id, username = client.guild_id, client.channel_id, client.username
        if not joined:
            self.send(
                client,
                "ERROR You must join a guild and channel before sending messages with JOIN <guild> <channel>.\n",
            )
            return
        self.broadcast(client, _limit(f"MSG {guild_id} {channel_id} {username} {payload}\n"))

    def _cmd_list_guilds(self, client: Client, rest: str | None) -> None:
        names = ", ".join(self.registry.guild_names())
        self.send(client, _limit(f"GUILDLIST {names}\n"))

    def _cmd_list_channels(self, client: Client, rest: str | None) -> None:
        words, _ = take_words(rest or "", 1)
        if not words:
            self.send(client, "ERROR LISTCHANNELS command requires a guild name.\n")
            return
        name = words[0]
        guild_id = self.registry.find_guild(name)
        if guild_id is None:
            self.send(client, "ERROR Guild not found.\n")
            return
        channels = ", ".join(self.registry.channel_names(guild_id))
        self.send(client, _limit(f"CHANNELLIST {name} {channels}\n"))

    def _cmd_leave(self, client: Client, rest: str | None) -> None:
        with self._lock:
            was_in_guild = client.guild_id is not None
            client.guild_id = None
            client.channel_id = None
        if was_in_guild:
            self.send(client, "INFO Left the current guild and channel.\n")
        else:
            self.send(client, "ERROR You are not in any guild or channel.\n")

    def _cmd_quit(self, client: Client, rest: str | None) -> None:
        log.info("Client %d (%s) requested to quit", client.slot, client.peer)
        self.unregister(client)

    def handle_client(self, client: Client) -> None:
        """Serve one client until it quits or disconnects."""
        self.send(client, WELCOME)
        try:
            while client.active:
                data = client.connection.recv(MAX_BUFFER_SIZE - 1)
                if not data:
                    log.info("Client %d (%s) disconnected", client.slot, client.peer)
                    break
                line = first_line(data.decode("utf-8", errors="replace"))
                log.info("Received from client %d: %s", client.slot, line)
                self.execute(client, line)
        except OSError as exc:
            if client.active:
                log.error("recv: %s", exc)
        finally:
            self.unregister(client)

    def serve_forever(self) -> None:
        """Listen for connections and serve each client in its own thread."""
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as server:
            server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            server.bind((self.host, self.port))
            server.listen(self.max_clients)
            self.server_address = server.getsockname()
            log.info("Server listening on port %d", self.server_address[1])
            while True:
                try:
                    connection, address = server.accept()
                except OSError as exc:
                    log.error("accept: %s", exc)
                    continue
                log.info("Accepted connection from %s:%d", address[0], address[1])
                try:
                    client = self.register(connection, address)
                except ServerFullError:
                    with suppress(OSError):
                        connection.sendall(SERVER_FULL.encode("utf-8"))
                    connection.close()
                    log.info("Max clients reached, rejecting connection from %s:%d", address[0], address[1])
                    continue
                thread = threading.Thread(target=self.handle_client, args=(client,), daemon=True)
                try:
                    thread.start()
                except RuntimeError as exc:
                    log.error("thread start: %s", exc)
                    self.send(client, UNEXPECTED)
                    self.unregister(client)
                    continue
                log.info(
                    "Client %d (%s) connected and assigned to slot %d", client.slot, client.peer, client.slot
                )


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="guildchat-server", description="Run the guild chat server.")
    parser.add_argument("--host", default="", help="address to bind (default: all interfaces)")
    parser.add_argument("--port", type=int, default=PORT, help=f"port to listen on (default: {PORT})")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(message)s", stream=sys.stdout)
    server = ChatServer(args.host, args.port)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        return 0
    except OSError as exc:
        print(f"server: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())