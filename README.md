# guildchat

A small chat system over TCP. Users connect to a server, pick a username,
and talk in channels that live inside guilds. Joining a guild or channel
that does not exist creates it; every new guild starts with a `general`
channel.

## Installing

```
pip install .
```

No third-party libraries are needed.

## Running the server

```
guildchat-server
```

By default the server listens on port 8080 on all interfaces. Use
`--host` and `--port` to change that:

```
guildchat-server --host 127.0.0.1 --port 9000
```

It accepts up to 100 clients at a time; a connection beyond that receives
`ERROR Server is full, try again later.` and is closed. It keeps at most 50
guilds, each with at most 50 channels. Activity is logged to standard
output.

## Connecting

```
guildchat-client <server_ip> <name>
```

For example:

```
guildchat-client 127.0.0.1 alice
```

`<server_ip>` must be an IPv4 address; host names are not resolved. The
client always connects to port 8080. The name is cut to 31 characters and
sent to the server on connecting; if it is already taken the server says
so and you stay `Anonymous`.

Anything you type that does not start with `/` is sent to the channel you
have joined. Commands:

| Command                   | Effect                                     |
|---------------------------|--------------------------------------------|
| `/join <guild> <channel>` | Join (creating if needed) a guild/channel  |
| `/leave`                  | Leave the current guild and channel        |
| `/createguild <name>`     | Create a guild                             |
| `/listguilds`             | List all guilds                            |
| `/listchannels <guild>`   | List the channels of a guild               |
| `/help`                   | Show the commands                          |
| `/quit` or `/exit`        | Leave the chat                             |

Messages appear as `[guild/channel] <user>: text`, where guild and channel
are shown by their numeric ids. Server notices are shown as
`[Server INFO]: ...` and errors as `[Server ERROR]: ...` on standard error.
When the server closes the connection the client prints
`[Server disconnected]` and exits.

## Wire protocol

Each message is one line of text. Clients send `NAME`, `JOIN`, `LEAVE`,
`CREATEGUILD`, `LISTGUILDS`, `LISTCHANNELS`, `MSG` and `QUIT`. The server
answers with `INFO`, `ERROR`, `GUILDLIST`, `CHANNELLIST` and `MSG` lines.
A channel message is relayed as `MSG <guild_id> <channel_id> <user> <text>`
to everyone in that channel, the sender included.

## Using it as a library

- `guildchat.protocol` holds the limits (`MAX_CLIENTS`, `MAX_GUILDS`,
  `MAX_CHANNELS_PER_GUILD`, `PORT`, ...) and the tokenising helpers
  `first_line`, `take_words` and `strip_one_space`.
- `guildchat.registry.GuildRegistry` stores guilds and channels in a
  thread-safe way. `find_or_create_guild` and `find_or_create_channel`
  return ids and raise `LimitReachedError` when a limit is hit;
  `find_guild`, `guild_names` and `channel_names` look things up.
- `guildchat.server.ChatServer` runs the server. `serve_forever` listens
  and serves each client in a thread; `register`, `execute`, `send`,
  `broadcast` and `unregister` can also be driven directly with any object
  that has `sendall`, `recv` and `close`. `register` raises
  `ServerFullError` when every slot is taken.
- `guildchat.client.ChatClient` talks to a server (`connect`, `send`,
  `receive_loop`, `run`, `close`). `guildchat.client.translate_input`
  turns a typed line into a protocol message (raising `UsageError` or
  `QuitRequested` where appropriate), and `guildchat.client.format_reply`
  turns a server line into an `Output` for display.

```python
from guildchat.client import format_reply, translate_input

translate_input("/join games chess")   # 'JOIN games chess'
format_reply("MSG 0 1 alice hello\n").text  # '[0/1] <alice>: hello\n'
```

## What it does not do

Guilds, channels and usernames live only in the server's memory and are
lost when it stops. There are no accounts or passwords, no private
messages, no message history and no encryption.

## Tests

```
pip install .[test]
pytest
```