import asyncio
from threading import Thread

from kisan_dost import config
from kisan_dost.chat_completion_interface import ChatCompletionInterface
from kisan_dost.languages import LOCALES
from kisan_dost.market_prices import AgmarknetClient, PriceLookup
from kisan_dost.preferences import Preferences
from kisan_dost.session_manager import SessionManager
from kisan_dost.speech_synthesis import SpeechSynthesizer
from kisan_dost.transcription import RealTimeTranscription


DICTATION_HELP = """  /mic          start or stop dictation
  /send         send what was dictated
"""

HELP = """commands:
{dictation}  /play N       read message N aloud (again to stop)
  /stop         stop reading aloud
  /lang CODE    switch language ({languages})
  /quit         exit
anything else is sent as a question."""


class ConsoleView:
    """Prints transcript changes as they happen."""

    def __init__(self):
        self.manager = None
        self.printed = 0
        self.last_partial = ""

    def render(self):
        manager = self.manager
        if manager is None:
            return
        if len(manager.messages) < self.printed:
            # Session was reset
            print("-" * 40)
            self.printed = 0
        for index in range(self.printed, len(manager.messages)):
            message = manager.messages[index]
            if message.role == 'model':
                print(f"[{index}] kisan dost: {message.content}")
        self.printed = len(manager.messages)
        if manager.is_recording and manager.input_buffer != self.last_partial:
            print(manager.input_buffer + " " * 10, end='\r', flush=True)
        self.last_partial = manager.input_buffer


def build_manager(language: str, view: ConsoleView) -> SessionManager:
    transport = ChatCompletionInterface.from_config()
    agmarknet_key = config.agmarknet_api_key()
    price_lookup = PriceLookup(transport, AgmarknetClient(agmarknet_key) if agmarknet_key else None)

    speech_output = SpeechSynthesizer.from_config()
    if speech_output is not None:
        speech_output.init()
    speech_input_factory = RealTimeTranscription if RealTimeTranscription.is_supported() else None

    manager = SessionManager(transport, price_lookup, speech_input_factory, speech_output,
                             language=language, on_change=view.render)
    view.manager = manager
    return manager


def help_text(manager: SessionManager) -> str:
    dictation = DICTATION_HELP if manager.speech_input_supported else ""
    return HELP.format(dictation=dictation, languages=", ".join(LOCALES))


async def read_line(prompt: str) -> str:
    """
    input() on a daemon thread. Ctrl-C can then end the program without waiting for Enter.
    """
    loop = asyncio.get_running_loop()
    future = loop.create_future()

    def deliver(result, error):
        if future.done():
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(result)

    def read():
        line, error = None, None
        try:
            line = input(prompt)
        except (EOFError, OSError) as e:
            error = e
        # The loop is gone once the program exited on Ctrl-C
        if not loop.is_closed():
            loop.call_soon_threadsafe(deliver, line, error)

    Thread(target=read, daemon=True).start()
    return await future


async def handle_command(manager: SessionManager, preferences: Preferences, line: str) -> bool:
    """
    :return: False when the user wants to exit
    """
    command, _, arg = line.partition(' ')
    if command == '/quit':
        return False
    if command == '/mic' and manager.speech_input_supported:
        manager.toggle_recording()
        if manager.speech_input is not None and manager.speech_input.is_active:
            print("listening... (/mic to stop, /send to send)")
    elif command == '/send':
        await manager.submit_input()
    elif command == '/play' and arg.strip().isdigit():
        manager.speak(int(arg))
    elif command == '/stop':
        manager.stop_speaking()
    elif command == '/lang' and arg.strip() in LOCALES:
        preferences.language = arg.strip()
        await manager.set_language(arg.strip())
    else:
        print(help_text(manager))
    return True


async def start_conversation_loop():
    preferences = Preferences()
    view = ConsoleView()
    manager = build_manager(preferences.language, view)

    async with manager:
        while True:
            try:
                line = (await read_line("you: ")).strip()
            except EOFError:
                print("Exiting...")
                break
            if not line:
                continue
            if line.startswith('/'):
                if not await handle_command(manager, preferences, line):
                    break
            else:
                await manager.submit(line)


if __name__ == "__main__":
    config.configure_logging()
    try:
        asyncio.run(start_conversation_loop())
    except KeyboardInterrupt:
        print("\nExiting...")
