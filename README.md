# controlrelay

Building blocks for a remote desktop control system: an asyncio rendezvous
relay that pairs a controlling client with a host, plus host-side helpers for
login checks, filesystem browsing and downloads, input event translation,
terminal output cleaning and screen capture through `ffmpeg`.

No third-party libraries are needed at run time.

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## The relay

Start the relay:

```
controlrelay-relay [--host ADDRESS] [--port PORT]
```

By default it binds all addresses on TCP port 34000. The control protocol is
line based:

- A host sends `REGISTER_HOST` and receives `HOST_REGISTERED <id>`, where the
  id is an adjective followed by a noun, such as `SwiftOtter`. If ten random
  pairs are all taken, a counter starting at 2 is appended
  (`controlrelay.words.generate_memorable_id`). Registering again on the same
  connection replaces the old id.
- A launcher sends `INITIATE_CLIENT_SESSION <host_id> [password]`. An unknown
  host gets `ERROR_HOST_NOT_FOUND <host_id>`. Otherwise the relay asks the
  host with `VERIFY_PASSWORD_REQUEST <token> <password>`, and the host answers
  `VERIFY_PASSWORD_RESPONSE <token> true|false`. A `false` answer, or no
  answer within the authentication timeout (10 seconds by default), gives the
  launcher `ERROR_AUTHENTICATION_FAILED <host_id>`. Answers are accepted only
  from the connection registered under that host id.
- On success the relay opens a fresh data port and sends
  `SESSION_READY <port> <session_token>` to the launcher and
  `CREATE_TUNNEL <port> <session_token>` to the host. Two connections are
  accepted on that port; each must identify itself with
  `SESSION_TOKEN <session_token> CLIENT_APP` or
  `SESSION_TOKEN <session_token> HOST_PROXY` within the identification
  timeout. The relay then copies bytes in both directions until either side
  closes, and closes both.
- Any other command is answered with `ERROR Unknown command: <command>`.

The relay can be embedded with `controlrelay.relay.RelayServer`:

```python
import asyncio
from controlrelay.relay import RelayServer

async def run():
    relay = RelayServer(host="127.0.0.1", port=0, auth_timeout=5.0)
    port = await relay.start()
    print("listening on", port)
    await relay.serve_forever()

asyncio.run(run())
```

`start()` returns the port actually bound, `serve_forever()` serves until
cancelled, and `close()` stops the listener and all sessions. The
`data_timeout` and `ident_timeout` arguments tune how long a session waits
for its data connections. `is_network_close_error(err)` tells whether an
exception only means the peer went away.

## Host-side helpers

### `controlrelay.auth`

`login(username, password)` returns a `LoginResult` with `success` and
`error_message` (`"Invalid credentials"` on failure). Only one fixed account
is accepted; `is_valid_user(username, password)` performs that check.

```python
from controlrelay.auth import login

password = "password"
print(login("test", password).success)
```

### `controlrelay.filesystem`

- `get_fs(path)` returns an `FSResponse`: the filesystem roots for an empty
  path (drive letters on Windows, `/` elsewhere, see `get_roots()`), or the
  directory's entries. Errors such as a missing path or denied permission are
  reported in `error_message` rather than raised.
- `list_directory_contents(dir_path)` returns `FSNode` entries (`path`,
  `name`, `type` as a `NodeType`, `has_children`, `size`) sorted by name.
- `iter_file_chunks(path, chunk_size=65536)` streams a file and
  `iter_folder_zip_chunks(path, chunk_size=65536)` streams a directory as a
  zip archive built on the fly. Both yield `FileChunk` objects; the first
  carries `total_size` (the file size, or 0 for a zip). Refusals raise
  `TransferError` with a `StatusCode` (`NOT_FOUND`, `INVALID_ARGUMENT`,
  `PERMISSION_DENIED`, `INTERNAL`) when the function is called.

```python
from controlrelay.filesystem import get_fs, iter_file_chunks

for node in get_fs("/tmp").nodes:
    print(node.name, node.type, node.size)

with open("copy.bin", "wb") as out:
    for chunk in iter_file_chunks("/etc/hostname"):
        out.write(chunk.content)
```

### `controlrelay.input`

- `map_key(name)` translates a client key name (`"KeyB"`, `"ShiftL"`,
  `"F5"`, `"NumAdd"`, ...) to a backend key name and whether it is a special
  key.
- `scale_factors(server_width, server_height, client_width, client_height)`
  gives the factors from client to server coordinates (1.0 when the client
  size is zero).
- `InputHandler(backend, scale_x, scale_y, allow_mouse)` applies
  `FeedRequest` events: pointer moves, batched moves (`Point` lists),
  button presses, scrolling and keyboard events (through
  `process_keyboard_input`), including Ctrl+Alt+Delete. With
  `allow_mouse=False` mouse events are ignored.

### `controlrelay.terminal`

`strip_ansi(text)` removes escape sequences, `decode_output(data)` turns a
chunk of shell output into text (a single newline for invalid UTF-8), and
`build_command_line(shell_path, args)` joins a shell and its arguments,
quoting those with spaces.

### `controlrelay.screen`

`ScreenCapture(encoder=None, bounds=None, command="ffmpeg")` runs `ffmpeg`
grabbing the desktop with `gdigrab` at 30 fps and producing MPEG-TS on its
standard output; `bounds` is `(x, y, width, height)` of the area to crop
before scaling to 1920x1080. `read_frame(size)` returns the next piece of
output and raises `EOFError` when it is closed or ended. If `ffmpeg` exits
unexpectedly it is restarted, up to three attempts. Use it as a context
manager or call `close()`.

Without an explicit encoder, `detect_encoder()` asks PowerShell for the first
video controller and `encoder_for_gpu(name)` picks `h264_amf`, `h264_nvenc`,
`h264_qsv` or `libx264`. `build_ffmpeg_args(...)` returns the exact argument
list, and `replace_or_add_arg(args, name, value)` edits such a list.

## What this package does not do

- It has no RPC server: the host-side helpers are plain functions and classes
  with no network service exposing them, and the only command is the relay.
- It does not drive the real mouse or keyboard. `InputBackend` is a protocol
  you implement for your platform.
- It does not spawn or manage terminal sessions; `controlrelay.terminal` only
  prepares command lines and cleans output.
- Screen capture relies on an `ffmpeg` with the `gdigrab` input, which is
  available on Windows only, and on PowerShell for GPU detection.