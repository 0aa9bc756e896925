import sys
from pathlib import Path

from fnlang.fnlang_runtime import ExecutionResult, ScriptRunner
from fnlang.fnlang_printer import Printer


# A basic line prompt.
def read_line(prompt: str) -> str:
    sys.stdout.write(prompt)
    sys.stdout.flush()
    return sys.stdin.readline()


def _write_output(result: ExecutionResult):
    # Print side effects (from print/println)
    output = result.output
    if output:
        sys.stdout.write(output)
        if not output.endswith("\n"):
            sys.stdout.write("\n")


def run_script_file(file_path: str):
    """Run an fnlang script file non-interactively and exit with appropriate status."""
    runner = ScriptRunner()
    p = Path(file_path)
    try:
        source = p.read_text(encoding="utf-8")
    except FileNotFoundError:
        print(f"Error: file not found: {file_path}", file=sys.stderr)
        raise SystemExit(1)
    result = runner.handle_script(source)
    _write_output(result)
    if result.status == 'error':
        print(result.format_error(), file=sys.stderr)
        raise SystemExit(1)


def main(argv=None):
    """Run a script file when provided, otherwise start the interactive REPL."""
    argv = sys.argv[1:] if argv is None else argv
    if argv and not argv[0].startswith("-"):
        run_script_file(argv[0])
        return

    print("fnlang REPL")
    print("Type 'exit' or press Ctrl+D to quit.")

    runner = ScriptRunner()
    printer = Printer()

    while True:
        try:
            raw = read_line(">> ")
            if raw == "":
                raise EOFError
            line = raw.strip()

            if not line:
                continue
            if line == "exit":
                break

            result = runner.handle_script(line)
            _write_output(result)

            if result.status == 'error':
                print(result.format_error(), file=sys.stderr)
                continue

            if result.value is not None:
                print(printer.pformat(result.value))

        except EOFError:
            print("\nExiting.")
            break
        except KeyboardInterrupt:
            print("\nExiting.")
            break


if __name__ == "__main__":
    main()
