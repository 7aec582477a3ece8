"""CLI entry point for Cortex Chat."""

import asyncio
import json
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional
import click
import structlog

from ..config.settings import settings
from ..core.preferences import THEMES, get_theme, set_theme, toggle_theme
from ..core.prompts import PromptRegistry
from ..core.session import ConversationSession
from ..core.voice import VoiceState, VoiceStateMachine
from ..metrics.collector import MetricsCollector
from ..providers import registry
from ..providers.registry import ProviderRegistry
from ..storage.store import JsonFileStore, KeyValueStore
from ..utils.logging import setup_logging, silence_logging


logger = structlog.get_logger()


CHAT_HELP = """Commands:
  /help          Show this help
  /clear         Clear the conversation
  /history       Show the conversation so far
  /model [ID]    Show models or switch model
  /prompt [ID]   Show prompts or switch prompt
  /status        Show the current session
  /debug         Toggle debug mode (shows the messages sent to the model)
  /exit          Leave the chat"""


def _open_store(ctx: click.Context) -> KeyValueStore:
    return JsonFileStore(ctx.obj["store_path"])


def _model_registry(mock: bool) -> ProviderRegistry:
    if mock:
        from mocks.providers import build_mock_registry

        return build_mock_registry()
    return registry


def _build_session(
    store: KeyValueStore, mock: bool = False, metrics: Optional[MetricsCollector] = None
) -> ConversationSession:
    return ConversationSession(
        store,
        _model_registry(mock),
        PromptRegistry(store),
        history_window=settings.models.history_window,
        metrics=metrics,
    )


def _start_metrics(enabled: bool) -> Optional[MetricsCollector]:
    if not enabled:
        return None
    collector = MetricsCollector(settings.storage.metrics_dir)
    collector.start_session(datetime.now().strftime("%Y%m%d%H%M%S"))
    return collector


def _finish_metrics(collector: Optional[MetricsCollector]) -> None:
    if not collector:
        return
    collector.end_session()
    summary = collector.get_summary()
    collector.save_metrics()

    click.echo("\nSession Summary:")
    click.echo(f"Duration: {summary['session_duration_seconds']:.1f}s")
    click.echo(f"Turns: {summary['turns']}")
    if summary["model_latency_ms"]["samples"] > 0:
        click.echo(f"Avg Model Latency: {summary['model_latency_ms']['avg']:.0f}ms")


def _read_line(prompt: str) -> Optional[str]:
    """Blocking stdin read, None at end of input."""
    click.echo(prompt, nl=False)
    line = sys.stdin.readline()
    if line == "":
        return None
    return line


def _echo_models(model_registry: ProviderRegistry, current: Optional[str]) -> None:
    for info in model_registry.list_models():
        marker = "*" if info.id == current else " "
        click.echo(f"{marker} {info.id:<32} {info.name} - {info.description}")


def _echo_prompts(prompt_registry: PromptRegistry, current: Optional[str]) -> None:
    for info in prompt_registry.list_prompts():
        marker = "*" if info.id == current else " "
        click.echo(f"{marker} {info.id:<16} {info.name} - {info.description}")


def _echo_debug(session: ConversationSession, reply: str) -> None:
    click.echo(click.style("=== DEBUG: All Messages ===", fg="blue"))
    for index, message in enumerate(session.last_request):
        click.echo(f"[{index}] {message.role.value.upper()}: {message.content}")
    for call in session.last_tool_calls:
        click.echo(f"Tool call: {call.name}({json.dumps(call.arguments)}) -> {call.result}")
    click.echo(f"[{len(session.last_request)}] ASSISTANT: {reply}")
    click.echo(click.style("=== End Debug Messages ===", fg="blue"))


def _echo_history(session: ConversationSession) -> None:
    messages = session.get_conversation_history()
    if not messages:
        click.echo("No messages yet.")
        return
    for message in messages:
        click.echo(f"[{message.timestamp}] {message.role.value}: {message.content}")


@click.group()
@click.option(
    "--store",
    "store_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Path to the JSON store file",
)
@click.option(
    "--config", type=click.Path(exists=True), help="Path to configuration file"
)
@click.pass_context
def cli(ctx, store_path: Optional[str], config: Optional[str]):
    """Cortex Chat: talk to hosted language models by text or voice."""
    ctx.ensure_object(dict)
    if config:
        settings.config_file = Path(config)
        settings.reload()
    ctx.obj["store_path"] = store_path or settings.storage.store_path
    setup_logging(
        log_file=settings.logging.file_enabled,
        log_level=settings.logging.level,
        log_format=settings.logging.format,
    )


async def _handle_chat_command(session: ConversationSession, line: str) -> bool:
    """Run a slash command. Returns False when the chat should end."""
    command, _, argument = line.partition(" ")
    argument = argument.strip()

    if command in ("/exit", "/quit"):
        return False
    elif command == "/help":
        click.echo(CHAT_HELP)
    elif command == "/clear":
        await session.clear_conversation()
        click.echo("Conversation cleared.")
    elif command == "/history":
        _echo_history(session)
    elif command == "/model":
        if argument:
            await session.set_model(argument)
            click.echo(f"Model set to {argument}")
        else:
            _echo_models(session.model_registry, session.model_id)
    elif command == "/prompt":
        if argument:
            await session.set_prompt(argument)
            click.echo(f"Prompt set to {argument}")
        else:
            _echo_prompts(session.prompt_registry, session.prompt_id)
    elif command == "/status":
        for key, value in session.get_status().items():
            click.echo(f"{key}: {value}")
    else:
        click.echo(f"Unknown command {command}. Type /help for commands.")
    return True


async def _chat_loop(
    session: ConversationSession, model: Optional[str], prompt: Optional[str]
) -> None:
    await session.load_from_store()
    if model:
        await session.set_model(model)
    if prompt:
        await session.set_prompt(prompt)

    click.echo(f"Model: {session.model_id} | Prompt: {session.prompt_id}")
    click.echo("Type /help for commands, /exit to quit.\n")

    debug_mode = False
    while True:
        line = await asyncio.to_thread(_read_line, "You: ")
        if line is None:
            click.echo()
            break

        text = line.strip()
        if not text:
            continue

        if text == "/debug":
            debug_mode = not debug_mode
            if debug_mode:
                click.echo("Debug mode enabled. All messages will be shown.")
            else:
                click.echo("Debug mode disabled. Only final responses will be shown.")
            continue

        if text.startswith("/"):
            if not await _handle_chat_command(session, text):
                break
            continue

        reply = await session.generate_response(text)
        if debug_mode:
            _echo_debug(session, reply)
        click.echo(f"Cortex: {reply}")

    await session.model_registry.close()


@cli.command()
@click.option("--model", "-m", help="Model id to use for this and later sessions")
@click.option("--prompt", "-p", help="Prompt id to use for this and later sessions")
@click.option("--mock", is_flag=True, help="Use an echo model (no API calls)")
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--no-metrics", is_flag=True, help="Disable metrics collection")
@click.pass_context
def chat(ctx, model: Optional[str], prompt: Optional[str], mock: bool, debug: bool, no_metrics: bool):
    """Start a text chat."""
    if debug:
        setup_logging(debug=True, log_format="dev")

    if mock:
        click.echo(
            click.style("Running in MOCK mode - no API calls will be made", fg="yellow")
        )

    metrics = _start_metrics(not no_metrics)
    session = _build_session(_open_store(ctx), mock=mock, metrics=metrics)

    try:
        asyncio.run(_chat_loop(session, model, prompt))
    except KeyboardInterrupt:
        click.echo("\n\nShutting down...")
    finally:
        _finish_metrics(metrics)

    click.echo("Goodbye!")


def _build_voice_machine(
    session: ConversationSession, mock: bool, metrics: Optional[MetricsCollector]
) -> VoiceStateMachine:
    if mock:
        from mocks.providers import FakePlayer, FakeRecorder, FakeSynthesizer, FakeTranscriber

        recorder, player = FakeRecorder(), FakePlayer(auto_end=True)
        stt, tts = FakeTranscriber(), FakeSynthesizer()
    else:
        from ..devices.pygame_playback import PygamePlayer
        from ..devices.sounddevice_capture import SoundDeviceRecorder

        recorder = SoundDeviceRecorder(
            sample_rate=settings.audio.sample_rate,
            channels=settings.audio.channels,
            dtype=settings.audio.format,
        )
        player = PygamePlayer()
        stt = registry.get_stt_provider("whisperkit")
        tts = registry.get_tts_provider("elevenlabs")

    def announce(state: VoiceState) -> None:
        click.echo(f"-- {state.value}")

    return VoiceStateMachine(
        session, recorder, player, stt, tts, metrics=metrics, on_state_change=announce
    )


async def _talk_loop(machine: VoiceStateMachine) -> None:
    await machine.session.load_from_store()
    click.echo("Press Enter to start or stop recording, or to interrupt the reply.")
    click.echo("Type q and Enter to quit.\n")

    while True:
        line = await asyncio.to_thread(_read_line, f"[{machine.state.value}] ")
        if line is None or line.strip().lower() == "q":
            break

        replies = machine.reply_count
        await machine.handle_microphone_action()

        if machine.last_event:
            logger.debug("Voice action finished", event=machine.last_event.value)
        if machine.reply_count != replies:
            click.echo(f"Cortex: {machine.last_reply}")

    await machine.close()
    await machine.session.model_registry.close()


@cli.command()
@click.option("--mock", is_flag=True, help="Use fake audio devices and speech providers")
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--no-metrics", is_flag=True, help="Disable metrics collection")
@click.pass_context
def talk(ctx, mock: bool, debug: bool, no_metrics: bool):
    """Start a voice conversation (Enter is the microphone button)."""
    if debug:
        setup_logging(debug=True, log_format="dev")

    if mock:
        click.echo(
            click.style(
                "Running in MOCK mode - no audio hardware or API calls", fg="yellow"
            )
        )

    metrics = _start_metrics(not no_metrics)
    session = _build_session(_open_store(ctx), mock=mock, metrics=metrics)

    try:
        machine = _build_voice_machine(session, mock, metrics)
        asyncio.run(_talk_loop(machine))
    except KeyboardInterrupt:
        click.echo("\n\nShutting down...")
    except Exception as e:
        logger.error("Fatal error", error=str(e), exc_info=True)
        click.echo(click.style(f"\nError: {str(e)}", fg="red"))
        sys.exit(1)
    finally:
        _finish_metrics(metrics)

    click.echo("Goodbye!")


@cli.command()
@click.pass_context
def models(ctx):
    """List available models (* marks the current one)."""
    session = _build_session(_open_store(ctx))
    asyncio.run(session.load_from_store())
    _echo_models(session.model_registry, session.model_id)


@cli.command()
@click.pass_context
def prompts(ctx):
    """List available prompts (* marks the current one)."""
    session = _build_session(_open_store(ctx))
    asyncio.run(session.load_from_store())
    _echo_prompts(session.prompt_registry, session.prompt_id)


@cli.command("set-model")
@click.argument("model_id")
@click.pass_context
def set_model(ctx, model_id: str):
    """Select the model used for new turns."""
    session = _build_session(_open_store(ctx))
    if not session.model_registry.has_model(model_id):
        click.echo(
            f"Warning: unknown model '{model_id}', "
            f"{session.model_registry.default_model} will be used instead",
            err=True,
        )
    asyncio.run(session.set_model(model_id))
    click.echo(f"Model set to {model_id}")


@cli.command("set-prompt")
@click.argument("prompt_id")
@click.pass_context
def set_prompt(ctx, prompt_id: str):
    """Select the system prompt used for new turns."""
    session = _build_session(_open_store(ctx))
    if not session.prompt_registry.is_known(prompt_id):
        click.echo(
            f"Warning: unknown prompt '{prompt_id}', the default prompt will be used instead",
            err=True,
        )
    asyncio.run(session.set_prompt(prompt_id))
    click.echo(f"Prompt set to {prompt_id}")


@cli.command("custom-prompt")
@click.argument("text", required=False)
@click.pass_context
def custom_prompt(ctx, text: Optional[str]):
    """Show the custom prompt, or replace it with TEXT."""
    session = _build_session(_open_store(ctx))
    if text is None:
        current = asyncio.run(session.prompt_registry.get_custom_prompt())
        click.echo(current if current else "(custom prompt is empty)")
        return

    asyncio.run(session.set_custom_prompt(text))
    click.echo("Custom prompt saved.")


@cli.command()
@click.option("--json", "json_output", is_flag=True, help="Output history as JSON")
@click.pass_context
def history(ctx, json_output: bool):
    """Show the saved conversation."""
    if json_output:
        # Keep stdout machine-readable
        silence_logging()

    session = _build_session(_open_store(ctx))
    asyncio.run(session.load_from_store())

    if json_output:
        messages = [m.to_dict() for m in session.get_conversation_history()]
        click.echo(json.dumps(messages, indent=2, ensure_ascii=False))
    else:
        _echo_history(session)


@cli.command()
@click.pass_context
def clear(ctx):
    """Delete the saved conversation."""
    session = _build_session(_open_store(ctx))
    asyncio.run(session.clear_conversation())
    click.echo("Conversation cleared.")


@cli.command()
@click.argument("value", required=False, type=click.Choice(THEMES))
@click.option("--toggle", is_flag=True, help="Switch between light and dark")
@click.pass_context
def theme(ctx, value: Optional[str], toggle: bool):
    """Show or set the display theme."""
    store = _open_store(ctx)
    if toggle:
        current = asyncio.run(toggle_theme(store))
    elif value:
        current = asyncio.run(set_theme(store, value))
    else:
        current = asyncio.run(get_theme(store))
    click.echo(f"Theme: {current}")


@cli.command("config")
@click.option(
    "--save", "save_path", type=click.Path(dir_okay=False), help="Write the settings to a file"
)
def show_config(save_path: Optional[str]):
    """Show the effective settings, or save them for use with --config."""
    if save_path:
        settings.save_to_file(save_path)
        click.echo(f"Settings saved to {save_path}")
        return

    click.echo(json.dumps(settings.to_dict(), indent=2, ensure_ascii=False))
    for issue in settings.validate():
        click.echo(f"Warning: {issue}", err=True)


if __name__ == "__main__":
    cli()
