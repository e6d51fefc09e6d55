import asyncio
import sys

from dotenv import load_dotenv
from loguru import logger

from chat_session_store.app_config import load_json_config, parse_app_config, resolve_runtime_env
from chat_session_store.bootstrap import bootstrap_runtime
from chat_session_store.shell import HistoryShell


async def main() -> None:
    load_dotenv()

    app = parse_app_config(load_json_config())
    env = resolve_runtime_env()
    try:
        runtime = bootstrap_runtime(app, env)
    except ValueError as ex:
        logger.error(str(ex))
        sys.exit(1)

    shell = HistoryShell(
        runtime.engine,
        export_directory=runtime.export_directory,
        rest_client=runtime.rest_client,
        migrate_on_sign_in=runtime.migrate_on_sign_in,
    )

    print("chat-session-store (type 'exit' to quit, '/help' for commands)")
    if runtime.engine.is_authenticated:
        print(f"Signed in as: {runtime.engine.owner_id}")
    else:
        print("Signed out: chats are kept on this device")
    if runtime.log_descriptions:
        print(f"Logging: {', '.join(runtime.log_descriptions)}")
    print()

    try:
        while True:
            try:
                user_input = input("you> ")
            except (EOFError, KeyboardInterrupt):
                break

            trimmed = user_input.strip()
            if trimmed in ("exit", "quit"):
                break
            if not trimmed:
                continue

            if not await shell.handle(trimmed):
                print("Commands start with '/'. Type /help for the list.")
    finally:
        await runtime.close()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
