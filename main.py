"""
Console harness for DialogueManager

Chat with one form on stdin/stdout, without Flask.

Usage:
    python main.py --form registration
    python main.py --form visit --token 555-55-5555
"""

import argparse
import logging
import sys

from dotenv import load_dotenv

from formchat.config import FormConfig, Settings
from formchat.core.dialogue_manager import DialogueManager
from formchat.core.session_registry import SessionRegistry
from formchat.errors import FormChatError
from formchat.llm import build_llm_client
from formchat.persistence import FormPersistence
from formchat.utils.helpers import generate_session_id
from formchat.utils.linking import linking_cookie_name

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

EXIT_COMMANDS = {"quit", "exit", "stop"}


def print_separator(char="=", length=60):
    """Print a separator line"""
    print(char * length)


def print_turn_debug(turn_result):
    """Print field updates and save outcome of a turn"""
    print("-" * 60)
    if turn_result.field_updates:
        print(f"Fields set: {turn_result.field_updates}")
    if len(turn_result.messages) > 1:
        print(f"Additional messages: {turn_result.messages[1:]}")
    if turn_result.did_save:
        print(f"Saved record {turn_result.saved_key!r}: {turn_result.saved_path}")
    print("-" * 60)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Chat with a form on the console")
    parser.add_argument("--form", required=True, help="Form name from the configuration")
    parser.add_argument("--token", help="Linking token of the form's context form")
    parser.add_argument("--config", help="Form configuration file (overrides FORMCHAT_CONFIG)")
    return parser.parse_args(argv)


def main(argv=None):
    """Run console chat"""
    load_dotenv()
    args = parse_args(argv)
    settings = Settings.from_env()

    print_separator()
    print("FORM CHAT - CONSOLE")
    print_separator()

    try:
        forms = FormConfig.from_file(args.config or settings.config_path)
        schema = forms.get(args.form)
        dm = DialogueManager(
            forms=forms,
            llm_client=build_llm_client(settings),
            persistence=FormPersistence(settings.data_dir),
            registry=SessionRegistry(ttl_seconds=0),
        )
    except (FormChatError, FileNotFoundError, KeyError, ValueError) as e:
        print(f"\nFailed to initialize: {e}")
        return 1

    # Console stands in for the browser cookie jar
    cookies = {}
    if args.token and schema.context_form:
        cookies[linking_cookie_name(forms.get(schema.context_form))] = args.token

    session_id = generate_session_id(short=True)
    context = dm.prefill(schema.name, cookies.get)
    if context.found:
        print(f"\nLoaded {context.form_name} record {context.key!r}: {context.record}")

    print(f"\nForm: {schema.title}")
    print("Type 'quit', 'exit', or 'stop' to end\n")
    if schema.greeting:
        print(f"Assistant: {schema.greeting}\n")

    while True:
        try:
            user_input = input("> ").strip()
        except (KeyboardInterrupt, EOFError):
            print("\n\nChat interrupted by user")
            break

        if not user_input:
            print("Please enter a response.\n")
            continue

        if user_input.lower() in EXIT_COMMANDS:
            break

        try:
            turn_result = dm.handle_turn(schema.name, session_id, user_input, cookies.get)
        except FormChatError as e:
            print(f"\nERROR ({type(e).__name__}): {e}\n")
            continue

        print(f"\nAssistant: {turn_result.display_message or '(no message)'}\n")
        print_turn_debug(turn_result)

        if turn_result.linking_token is not None:
            name, value = turn_result.linking_token
            cookies[name] = value

        if turn_result.did_save:
            print_separator()
            print("FORM SAVED")
            if turn_result.next_form:
                print(f"Next: python main.py --form {turn_result.next_form} --token {turn_result.saved_key}")
            print_separator()
            break

    print_separator()
    print("Console chat complete")
    print_separator()
    return 0


if __name__ == '__main__':
    sys.exit(main())
