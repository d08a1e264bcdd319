"""Minimal demonstration of the ZOEY assistant in a terminal."""

from zoey_core.api.service import get_default_assistant, shutdown

if __name__ == "__main__":
    assistant = get_default_assistant()
    try:
        while True:
            question = input("You: ").strip()
            if not question:
                break
            print("ZOEY: ", end="", flush=True)
            reply = assistant.ask(question, on_token=lambda t: print(t, end="", flush=True))
            print()
            status = assistant.status()
            if status["error"]:
                print("!", status["error"])
            elif reply:
                print(f"[{status['active_provider']}]")
    finally:
        shutdown()
