"""Console entry point for chatting with the agent.

Reads messages from stdin and prints the agent's answers.
Environment variables are loaded from .env file.

Commands:
    /new      Start a new conversation
    /retry    Resend the last message
    /threads  List stored threads
    /quit     Exit
"""

import asyncio
import logging
import os
import sys
from typing import TYPE_CHECKING

from dotenv import load_dotenv

# Load environment variables before any other imports that might need them
load_dotenv()

# Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "WARNING").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stderr)],
)
logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from agent_chat.agent import AgentChatController


def render_new_messages(controller: "AgentChatController", seen: int) -> int:
    """Print assistant messages appended since ``seen``; return the new count."""
    for message in controller.messages[seen:]:
        if message.role != "assistant":
            continue
        print(f"\nassistant> {message.content}")
        for source in message.sources or []:
            print(f"  - {source.title}: {source.url}")
    if controller.pending_clarification is not None:
        print("\n(reply to continue the clarified question)")
    return len(controller.messages)


async def run_console() -> None:
    """Run the interactive chat loop until /quit or EOF."""
    from agent_chat.agent import create_chat_controller

    controller = create_chat_controller()
    logger.info(f"Chatting on thread {controller.thread_id}")
    seen = len(controller.messages)

    while True:
        try:
            text = await asyncio.to_thread(input, "\nyou> ")
        except EOFError:
            break
        command = text.strip().lower()

        if command == "/quit":
            break
        if command == "/new":
            controller.start_new_conversation()
            seen = 0
            print(f"New conversation: {controller.thread_id}")
            continue
        if command == "/threads":
            for thread_id in controller.list_thread_ids():
                marker = "*" if thread_id == controller.thread_id else " "
                print(f"{marker} {thread_id}")
            continue
        if command == "/retry":
            if not controller.can_retry:
                print("Nothing to retry.")
                continue
            await controller.retry_last_message()
        else:
            await controller.send_message(text)

        seen = render_new_messages(controller, min(seen, len(controller.messages)))


def main() -> None:
    """Application entry point."""
    try:
        asyncio.run(run_console())
    except KeyboardInterrupt:
        logger.info("Interrupted, exiting")


if __name__ == "__main__":
    main()
