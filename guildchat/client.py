"""Interactive chat client: turns typed lines into commands and prints server replies."""

from __future__ import annotations

import ipaddress
import os
import socket
import sys
import threading
from collections.abc import Iterable
from contextlib import suppress
from dataclasses import dataclass

from guildchat.protocol import (
    MAX_BUFFER_SIZE,
    MAX_USERNAME_SIZE,
    PORT,
    first_line,
    strip_one_space,
    take_words,
)

HELP_TEXT = (
    "Available commands:\n"
    "\t/join <guild> <channel> - Join a guild and channel\n"
    "\t/leave - Leave the current guild and channel\n"
    "\t/listguilds - List all guilds\n"
    "\t/listchannels <guild> - List channels in a guild\n"
    "\t/quit or /exit - Exit the client\n"
)

BANNER = "Connected to server. You can start sending messages.\nType '/help' for available commands.\n"

QUIT_MESSAGE = "QUIT\n"


class UsageError(Exception):
    """Raised when a typed command is unknown or lacks its arguments."""


class QuitRequested(Exception):
    """Raised when the user asks to leave; carries the message to send first."""

    def __init__(self, message: str = QUIT_MESSAGE) -> None:
        super().__init__("quit requested")
        self.message = message


@dataclass(frozen=True)
class Output:
    """Text to show the user, on standard error when ``error`` is set."""

    text: str
    error: bool = False


def _limit(message: str) -> str:
    return message[: MAX_BUFFER_SIZE - 1]


def translate_input(line: str) -> str | Output | None:
    """Turn one typed line into a wire message.

    Returns the message to send, an :class:`Output` to show locally, or
    ``None`` for an empty line. Raises :class:`QuitRequested` for ``/quit``
    and ``/exit`` and :class:`UsageError` for malformed commands.
    """
    line = first_line(line)
    if not line:
        return None
    if not line.startswith("/"):
        return _limit(f"MSG {line}")

    words, _ = take_words(line[1:], 3)
    command = words[0] if words else ""
    args = words[1:]

    if command in ("quit", "exit"):
        raise QuitRequested(QUIT_MESSAGE)
    if command == "join":
        if len(args) < 2:
            raise UsageError("Usage: /join <guild> <channel>")
        return _limit(f"JOIN {args[0]} {args[1]}")
    if command == "leave":
        return "LEAVE\n"
    if command == "createguild":
        if not args:
            raise UsageError("Usage: /createguild <guild_name>")
        return _limit(f"CREATEGUILD {args[0]}")
    if command == "listguilds":
        return "LISTGUILDS\n"
    if command == "listchannels":
        if not args:
            raise UsageError("Usage: /listchannels <guild>")
        return _limit(f"LISTCHANNELS {args[0]}")
    if command == "help":
        return Output(HELP_TEXT)
    raise UsageError(f"Unknown command: {command}")


def format_reply(reply: str) -> Output | None:
    """Render one server reply for display, or ``None`` if it holds no command."""
    line = first_line(reply)
    words, rest = take_words(line, 1)
    if not words:
        return None
    command = words[0]

    if command == "MSG":
        fields, payload = take_words(rest or "", 3)
        if len(fields) == 3 and payload is not None:
            guild, channel, user = fields
            return Output(f"[{guild}/{channel}] <{user}>: {strip_one_space(payload)}\n")
        return Output(f"Malformed message received: {reply}\n", error=True)
    if command == "INFO":
        return Output(f"[Server INFO]: {strip_one_space(rest)}\n" if rest is not None else "")
    if command == "ERROR":
        return Output(f"[Server ERROR]: {strip_one_space(rest)}\n" if rest is not None else "", error=True)
    if command == "GUILDLIST":
        if rest is None:
            return Output("[Guilds]: No guilds available.\n")
        return Output(f"[Guilds]: {strip_one_space(rest)}\n")
    if command == "CHANNELLIST":
        fields, payload = take_words(rest or "", 1)
        if not fields:
            return Output("")
        listing = strip_one_space(payload) if payload is not None else "No channels available."
        return Output(f"[Channels in {fields[0]}]: {listing}\n")
    return Output(reply, error=True)


def _emit(output: Output) -> None:
    if not output.text:
        return
    stream = sys.stderr if output.error else sys.stdout
    stream.write(output.text)
    stream.flush()


class ChatClient:
    """A connection to the chat server on behalf of one user."""

    def __init__(self, server_ip: str, name: str, port: int = PORT) -> None:
        self.server_ip = server_ip
        self.name = name[: MAX_USERNAME_SIZE - 1]
        self.port = port
        self._sock: socket.socket | None = None
        self._closing = False

    def connect(self) -> None:
        """Open the connection and announce the user's name."""
        try:
            ipaddress.IPv4Address(self.server_ip)
        except ValueError:
            raise ValueError(f"Invalid address or address not supported: {self.server_ip}") from None
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.connect((self.server_ip, self.port))
            sock.sendall(_limit(f"NAME {self.name}").encode("utf-8"))
        except OSError:
            sock.close()
            raise
        self._sock = sock
        self._closing = False

    def send(self, message: str) -> None:
        """Send a wire message; raises :class:`OSError` on failure."""
        if self._sock is None:
            raise ConnectionError("not connected")
        self._sock.sendall(message.encode("utf-8"))

    def _prompt(self) -> None:
        sys.stdout.write(f"{self.name}> ")
        sys.stdout.flush()

    def receive_loop(self) -> bool:
        """Print server replies until the connection ends.

        Returns ``True`` when the server closed the connection and ``False``
        when receiving failed or the client was closed.
        """
        sock = self._sock
        if sock is None:
            raise ConnectionError("not connected")
        while True:
            try:
                data = sock.recv(MAX_BUFFER_SIZE - 1)
            except OSError as exc:
                if not self._closing:
                    print(f"recv: {exc}", file=sys.stderr)
                return False
            if not data:
                if self._closing:
                    return False
                sys.stdout.write("\r\033[K[Server disconnected]\n")
                sys.stdout.flush()
                return True
            sys.stdout.write("\033[K\r")
            sys.stdout.flush()
            output = format_reply(data.decode("utf-8", errors="replace"))
            if output is None:
                continue
            _emit(output)
            self._prompt()

    def run(self, lines: Iterable[str]) -> None:
        """Read typed lines, sending each as a command, until quit or end of input."""
        iterator = iter(lines)
        while True:
            self._prompt()
            line = next(iterator, None)
            if line is None:
                break
            try:
                result = translate_input(line)
            except QuitRequested as request:
                try:
                    self.send(request.message)
                except OSError as exc:
                    print(f"Failed to send message: {exc}", file=sys.stderr)
                break
            except UsageError as exc:
                print(exc, file=sys.stderr)
                continue
            if result is None:
                continue
            if isinstance(result, Output):
                _emit(result)
                continue
            try:
                self.send(result)
            except OSError:
                print(f"Failed to send message: {result}", file=sys.stderr)
                break

    def close(self) -> None:
        """Close the connection, ending any running receive loop."""
        sock, self._sock = self._sock, None
        if sock is None:
            return
        self._closing = True
        with suppress(OSError):
            sock.shutdown(socket.SHUT_RDWR)
        sock.close()


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    if len(args) != 2:
        print("Usage: guildchat-client <server_ip> <name>", file=sys.stderr)
        return 1
    server_ip, name = args

    client = ChatClient(server_ip, name)
    try:
        client.connect()
    except (ValueError, OSError) as exc:
        print(f"Connection failed: {exc}", file=sys.stderr)
        return 1

    def receive() -> None:
        if client.receive_loop():
            sys.stdout.flush()
            os._exit(0)

    receiver = threading.Thread(target=receive, daemon=True)
    receiver.start()

    sys.stdout.write(BANNER)
    sys.stdout.flush()
    try:
        client.run(sys.stdin)
    except KeyboardInterrupt:
        pass
    finally:
        client.close()
        receiver.join(timeout=1.0)
    return 0


if __name__ == "__main__":
    sys.exit(main())