import socket

import pytest

from guildchat.client import (
    HELP_TEXT,
    ChatClient,
    Output,
    QuitRequested,
    UsageError,
    format_reply,
    main,
    translate_input,
)
from guildchat.protocol import MAX_USERNAME_SIZE
from guildchat.server import ChatServer


@pytest.fixture
def listener():
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    sock.listen(1)
    sock.settimeout(5)
    yield sock
    sock.close()


def _read_until(conn, suffix):
    data = b""
    conn.settimeout(5)
    while not data.endswith(suffix):
        chunk = conn.recv(4096)
        if not chunk:
            break
        data += chunk
    return data


class _FakeConnection:
    def __init__(self):
        self.sent = []

    def sendall(self, data):
        self.sent.append(data.decode("utf-8"))

    def close(self):
        pass


# translate_input


def test_plain_text_becomes_msg():
    assert translate_input("hello there\n") == "MSG hello there"


def test_join_with_both_arguments():
    assert translate_input("/join guild chan") == "JOIN guild chan"


def test_join_missing_channel_is_usage_error():
    with pytest.raises(UsageError, match="/join <guild> <channel>"):
        translate_input("/join guild")


@pytest.mark.parametrize(
    "line, expected",
    [
        ("/leave", "LEAVE\n"),
        ("/listguilds", "LISTGUILDS\n"),
        ("/createguild rust", "CREATEGUILD rust"),
        ("/listchannels rust", "LISTCHANNELS rust"),
    ],
)
def test_simple_commands(line, expected):
    assert translate_input(line) == expected


@pytest.mark.parametrize("line", ["/createguild", "/listchannels"])
def test_missing_argument_is_usage_error(line):
    with pytest.raises(UsageError, match="Usage"):
        translate_input(line)


@pytest.mark.parametrize("line", ["/quit", "/exit"])
def test_quit_requests_carry_quit_message(line):
    with pytest.raises(QuitRequested) as info:
        translate_input(line)
    assert info.value.message == "QUIT\n"


def test_unknown_command_names_it():
    with pytest.raises(UsageError, match="Unknown command: frobnicate"):
        translate_input("/frobnicate now")


@pytest.mark.parametrize("line", ["", "\n", "\r\n"])
def test_empty_input_yields_nothing(line):
    assert translate_input(line) is None


def test_help_is_local_output():
    result = translate_input("/help")
    assert result == Output(HELP_TEXT)
    assert "/listchannels <guild>" in result.text


def test_only_first_line_is_used():
    assert translate_input("hi\r\nignored") == "MSG hi"


# format_reply


def test_format_channel_message():
    assert format_reply("MSG 0 1 bob hi there\n") == Output("[0/1] <bob>: hi there\n")


def test_format_malformed_message():
    result = format_reply("MSG 0 1\n")
    assert result.error
    assert result.text.startswith("Malformed message received: MSG 0 1")


def test_format_info_and_error():
    assert format_reply("INFO Left the current guild and channel.\n") == Output(
        "[Server INFO]: Left the current guild and channel.\n"
    )
    assert format_reply("ERROR Guild not found.\n") == Output("[Server ERROR]: Guild not found.\n", error=True)


def test_format_empty_guild_list():
    assert format_reply("GUILDLIST \n") == Output("[Guilds]: No guilds available.\n")


def test_format_guild_list():
    assert format_reply("GUILDLIST a, b\n") == Output("[Guilds]: a, b\n")


def test_format_channel_list():
    assert format_reply("CHANNELLIST g general\n") == Output("[Channels in g]: general\n")
    assert format_reply("CHANNELLIST g\n") == Output("[Channels in g]: No channels available.\n")


def test_format_unknown_reply_is_raw_on_stderr():
    assert format_reply("WHAT is this\n") == Output("WHAT is this\n", error=True)


def test_format_blank_reply_is_skipped():
    assert format_reply("\r\n") is None


def test_server_replies_render_through_format_reply():
    server = ChatServer(max_clients=4)
    connection = _FakeConnection()
    client = server.register(connection, ("127.0.0.1", 5000))
    server.execute(client, "CREATEGUILD rust")
    server.execute(client, "LISTGUILDS")
    server.execute(client, "LISTCHANNELS rust")
    rendered = [format_reply(text) for text in connection.sent]
    assert rendered[1] == Output("[Guilds]: rust\n")
    assert rendered[2] == Output("[Channels in rust]: general\n")


# ChatClient


def test_name_is_clipped():
    client = ChatClient("127.0.0.1", "x" * 40, 1)
    assert len(client.name) == MAX_USERNAME_SIZE - 1


def test_invalid_address_rejected():
    client = ChatClient("not-an-address", "alice", 1)
    with pytest.raises(ValueError, match="Invalid address"):
        client.connect()


def test_send_before_connect_fails():
    with pytest.raises(ConnectionError):
        ChatClient("127.0.0.1", "alice", 1).send("MSG hi")


def test_run_sends_translated_commands(listener, capsys):
    client = ChatClient("127.0.0.1", "alice", listener.getsockname()[1])
    client.connect()
    conn, _ = listener.accept()
    try:
        client.run(["hello", "", "/join g c", "/nope", "/quit", "never sent"])
        data = _read_until(conn, b"QUIT\n")
    finally:
        client.close()
        conn.close()
    assert data == b"NAME aliceMSG helloJOIN g cQUIT\n"
    assert "Unknown command: nope" in capsys.readouterr().err


def test_receive_loop_prints_and_reports_disconnect(listener, capsys):
    client = ChatClient("127.0.0.1", "alice", listener.getsockname()[1])
    client.connect()
    conn, _ = listener.accept()
    _read_until(conn, b"NAME alice")
    conn.sendall(b"INFO Username set to alice.\n")
    conn.close()
    try:
        assert client.receive_loop() is True
    finally:
        client.close()
    out = capsys.readouterr().out
    assert "[Server INFO]: Username set to alice.\n" in out
    assert "[Server disconnected]" in out


# main


def test_main_requires_two_arguments(capsys):
    assert main([]) == 1
    assert "Usage" in capsys.readouterr().err


def test_main_rejects_bad_address(capsys):
    assert main(["bogus-address", "bob"]) == 1
    assert "Invalid address" in capsys.readouterr().err