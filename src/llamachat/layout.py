"""Terminal layout: conversation view, model and tool pickers, prompt."""

import logging

from rich.text import Text
from textual import work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.message import Message
from textual.widgets import Footer, Input, OptionList, Static
from textual.widgets.option_list import Option
from textual.worker import Worker, WorkerState

from .errors import LlamachatError, SessionNotReady
from .models import SessionState, TurnResult

logger = logging.getLogger(__name__)

WELCOME = (
    "Welcome to llamachat!\n"
    "Type a message and press Enter to send.\n\n"
    "Use Tab to move between the models list, the tools switch and the prompt.\n"
    "Commands: /host <url>, /rag <url>, /clear, exit. Use ctrl+c or esc to quit."
)

TOOL_CHOICES = ["Disabled", "Enabled"]
MIN_SIDEBAR_WIDTH = 20


class TurnFinished(Message):
    """Posted by the worker thread once a turn has been processed."""

    def __init__(self, result: TurnResult) -> None:
        super().__init__()
        self.result = result


class ChatApp(App):
    CSS = """
    #sidebar {
        width: 24;
        height: 100%;
    }
    #models, #tools {
        height: 1fr;
        border: round red;
    }
    #conversation {
        border: round $accent;
        height: 100%;
        padding: 0 1;
    }
    #status {
        height: 2;
        color: $text-muted;
    }
    #prompt {
        dock: bottom;
    }
    """

    BINDINGS = [
        Binding("ctrl+c", "quit", "Quit"),
        Binding("escape", "quit", "Quit", show=False),
        Binding("ctrl+l", "clear_history", "Clear"),
        Binding("ctrl+t", "toggle_tools", "Tools"),
        Binding("ctrl+r", "toggle_rag", "RAG"),
        Binding("ctrl+d", "toggle_dark", "Theme"),
    ]

    def __init__(self, session) -> None:
        super().__init__()
        self.session = session

    def compose(self) -> ComposeResult:
        with Horizontal():
            with Vertical(id="sidebar"):
                yield OptionList(id="models")
                yield OptionList(*TOOL_CHOICES, id="tools")
                yield Static(id="status")
            with VerticalScroll(id="conversation"):
                yield Static(WELCOME, id="messages")
        yield Input(placeholder="Send a message...", id="prompt")
        yield Footer()

    def on_mount(self) -> None:
        self.query_one("#models", OptionList).border_title = "Models"
        self.query_one("#tools", OptionList).border_title = "Tools"
        self._apply_theme()
        self.refresh_models()
        self.refresh_status()
        if not self.session.has_valid_connection() and self.session.last_error:
            self.notify(self.session.last_error, severity="error", timeout=8)
        self.query_one("#prompt", Input).focus()

    # --- Rendering ---

    def refresh_conversation(self) -> None:
        rendered = self.session.store.render()
        self.query_one("#messages", Static).update(rendered or WELCOME)
        self.query_one("#conversation", VerticalScroll).scroll_end(animate=False)

    def refresh_models(self) -> None:
        models = self.query_one("#models", OptionList)
        models.clear_options()
        current = self.session.current_model
        for name in self.session.model_names():
            style = "green" if name == current else ""
            models.add_option(Option(Text(name, style=style), id=name))

        if self.session.catalog is not None:
            width = self.session.catalog.max_model_name_length() + 4
            self.query_one("#sidebar").styles.width = max(width, MIN_SIDEBAR_WIDTH)

    def refresh_status(self) -> None:
        session = self.session
        tokens, window = session.usage
        window_text = f"/{window}" if window else ""
        lines = [
            f"tokens ~{tokens}{window_text}",
            f"tools: {'on' if session.tools_enabled else 'off'}"
            f"  rag: {'on' if session.rag_enabled else 'off'}",
        ]
        self.query_one("#status", Static).update("\n".join(lines))
        self.query_one("#tools", OptionList).highlighted = int(session.tools_enabled)

    def _apply_theme(self) -> None:
        self.theme = "textual-dark" if self.session.settings.dark_mode else "textual-light"

    # --- Events ---

    def on_option_list_option_selected(self, event: OptionList.OptionSelected) -> None:
        if event.option_list.id == "models":
            try:
                self.session.select_model(event.option.id)
            except SessionNotReady as exc:
                self.notify(str(exc), severity="warning")
            except LlamachatError as exc:
                self.session.report_error(str(exc))
            self.refresh_models()
            self.refresh_conversation()
        elif event.option_list.id == "tools":
            self.session.set_tools_enabled(event.option_index == 1)
        self.refresh_status()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        text = event.value.strip()
        if not text:
            return
        event.input.clear()

        if text == "exit":
            self.exit()
            return
        if text.startswith("/") and self._run_command(text):
            return

        session = self.session
        if session.state == SessionState.AWAITING_MODEL_SELECTION:
            if not session.reconnect():
                self.refresh_models()
                self.notify(
                    session.last_error or "Select a model first", severity="error"
                )
                return
            self.refresh_models()

        event.input.disabled = True
        self.query_one("#status", Static).update("waiting for the model...")
        self.send_turn(text)

    @work(exclusive=True, group="turn", exit_on_error=False)
    async def send_turn(self, text: str) -> None:
        try:
            result = await self.session.submit_async(text)
        except LlamachatError as exc:
            result = TurnResult(state=self.session.state, error=str(exc))
            self.notify(str(exc), severity="error")
        self.post_message(TurnFinished(result))

    def on_worker_state_changed(self, event: Worker.StateChanged) -> None:
        if event.worker.group == "turn" and event.state == WorkerState.ERROR:
            logger.error("Turn worker failed: %s", event.worker.error)
            self.notify(f"Turn failed: {event.worker.error}", severity="error")
            self.post_message(TurnFinished(TurnResult(state=self.session.state)))

    def on_turn_finished(self, message: TurnFinished) -> None:
        if message.result.error:
            logger.info("Turn ended with an error: %s", message.result.error)
        self.refresh_conversation()
        self.refresh_status()
        prompt = self.query_one("#prompt", Input)
        prompt.disabled = False
        prompt.focus()

    def _run_command(self, text: str) -> bool:
        command, _, argument = text.partition(" ")
        argument = argument.strip()
        if command == "/clear":
            self.action_clear_history()
        elif command == "/host" and argument:
            if not self.session.change_backend(argument):
                self.notify(self.session.last_error, severity="error")
            self.refresh_models()
            self.refresh_status()
        elif command == "/rag" and argument:
            self.session.set_rag_url(argument)
            self.notify(f"RAG index set to {argument}")
        else:
            return False
        return True

    # --- Actions ---

    def action_clear_history(self) -> None:
        try:
            self.session.clear_history()
        except SessionNotReady as exc:
            self.notify(str(exc), severity="warning")
            return
        self.refresh_conversation()
        self.refresh_status()

    def action_toggle_tools(self) -> None:
        self.session.set_tools_enabled(not self.session.tools_enabled)
        self.refresh_status()

    def action_toggle_rag(self) -> None:
        self.session.set_rag_enabled(not self.session.rag_enabled)
        self.refresh_status()

    def action_toggle_dark(self) -> None:
        self.session.set_dark_mode(not self.session.settings.dark_mode)
        self._apply_theme()
