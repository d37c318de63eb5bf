"""
Terminal push-to-talk client.

    python -m client.cli --url ws://192.168.1.10:3000/ws

Enter toggles talking, q + Enter quits. Roster, talkers and link status
are printed whenever they change.
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from dotenv import load_dotenv

from client.capture import CapturePipeline
from client.connection import RelayClient
from client.devices import (
    PlaybackUnavailable,
    ScheduledOutput,
    open_input_stream,
    open_output_stream,
)
from client.playback import PlaybackScheduler
from config import ClientConfig, parse_device


def parse_args(config: ClientConfig) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="LAN push-to-talk client")
    parser.add_argument("--url", default=config.relay_url, help="relay WebSocket URL")
    parser.add_argument("--input-device", type=parse_device, default=config.input_device)
    parser.add_argument("--output-device", type=parse_device, default=config.output_device)
    parser.add_argument(
        "--reconnect-attempts", type=int, default=config.reconnect_attempts
    )
    parser.add_argument(
        "--name", default=config.local_name, help="how this device is shown locally"
    )
    return parser.parse_args()


def render(
    client: RelayClient,
    capture: CapturePipeline,
    playback: PlaybackScheduler,
    local_name: str | None = None,
) -> None:
    names = ", ".join(
        f"{(local_name or 'You (Me)') if e.is_self else e.name}"
        f"{' (talking)' if e.is_talking else ''}"
        for e in client.roster.entries()
    )
    line = f"[{client.status.value}] {names or 'no participants'}"
    if client.is_talking:
        line += f"  >> TALKING (vol {capture.volume})"
    elif playback.is_playing:
        talkers = ", ".join(client.roster.talkers()) or "?"
        line += f"  << {talkers} (vol {playback.volume})"
    if client.error_message:
        line += f"  ! {client.error_message}"
    print(line, flush=True)


def handle_line(line: str, client: RelayClient, *, relay_running: bool) -> bool:
    """
    Apply one line of stdin: Enter toggles talking, q quits.

    Returns False when the client should exit. Once the relay loop has
    given up, input only exits; the microphone is never opened again.
    """
    if not line or line.strip().lower() == "q" or not relay_running:
        return False
    if client.is_talking:
        client.stop_talking()
    else:
        client.start_talking()
    return True


async def run(args: argparse.Namespace) -> None:
    loop = asyncio.get_running_loop()

    output = ScheduledOutput()
    output_stream = open_output_stream(output, device=args.output_device)
    try:
        await _run_client(args, loop, output)
    finally:
        output_stream.close()


async def _run_client(
    args: argparse.Namespace,
    loop: asyncio.AbstractEventLoop,
    output: ScheduledOutput,
) -> None:
    def on_change() -> None:
        render(client, capture, playback, args.name)

    playback = PlaybackScheduler(output, call_later=loop.call_later)
    client = RelayClient(
        args.url,
        playback=playback,
        reconnect_attempts=args.reconnect_attempts,
        on_change=on_change,
    )
    capture = CapturePipeline(
        emit_stream=client.send_stream,
        emit_status=client.send_status,
        open_input=lambda c, cb: open_input_stream(c, cb, device=args.input_device),
        dispatch=loop.call_soon_threadsafe,
        on_change=on_change,
    )
    client.attach_capture(capture)

    relay_task = asyncio.create_task(client.run())
    try:
        while not relay_task.done():
            line = await loop.run_in_executor(None, sys.stdin.readline)
            if not handle_line(line, client, relay_running=not relay_task.done()):
                break
    finally:
        client.stop_talking()
        client.close()
        relay_task.cancel()
        await asyncio.gather(relay_task, return_exceptions=True)


def main() -> None:
    load_dotenv()
    args = parse_args(ClientConfig.load_from_env())
    try:
        asyncio.run(run(args))
    except PlaybackUnavailable as exc:
        raise SystemExit(f"No usable output device: {exc}") from exc
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
