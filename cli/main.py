"""CLI entry point and argument parsing"""

import argparse
import sys
from rich.console import Console
import settings
from cli.chat_app import ChatCLI
from utils.debug_console import setup_logging


console = Console()


def main():
    """Entry point for the CLI"""
    parser = argparse.ArgumentParser(description="On-Demand chat client")
    parser.add_argument("--debug", "-d", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--stream-trace",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Enable raw stream tracing log capture (on by default with --debug unless explicitly disabled)"
    )

    args = parser.parse_args()

    # Determine stream tracing preference (config default -> CLI overrides)
    stream_trace_setting = settings.STREAM_TRACE_ENABLED
    if args.stream_trace is None:
        if args.debug:
            stream_trace_setting = True
    else:
        stream_trace_setting = args.stream_trace

    if not args.debug:
        setup_logging(settings.LOG_LEVEL)

    try:
        cli = ChatCLI(debug=args.debug, stream_trace_enabled=stream_trace_setting)
        cli.run()

    except (KeyboardInterrupt, EOFError):
        console.print("\n[yellow]Interrupted by user[/yellow]")
        console.print("Goodbye!")
    except Exception as e:
        console.print(f"\n[red]Fatal error:[/red] {e}")
        if args.debug:
            import traceback
            traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
