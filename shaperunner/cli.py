"""
Command-line client for the ShapeRunner /run endpoint.

Reads a task input as JSON (file or stdin), sends it MessagePack-encoded and
prints the decoded output as JSON, or writes the raw MessagePack bytes.
"""
import argparse
import base64
import json
import sys

import httpx
from pydantic import ValidationError

from shaperunner.rpc.codec import MsgPackCodec
from shaperunner.shapes.registry import TASKS


class CLIError(Exception):
    pass


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="shaperunner-cli", description="CLI client for the ShapeRunner service")
    parser.add_argument("-s", "--task", default="FeatureDesign", choices=sorted(TASKS),
                        help="Task to execute")
    parser.add_argument("--server", default="http://localhost:8000", help="Server base URL")
    parser.add_argument("-i", "--input", default="-", help='Input JSON file ("-" for stdin)')
    parser.add_argument("-f", "--format", default="json", choices=["json", "msgpack"], help="Output format")
    parser.add_argument("-t", "--timeout", type=float, default=60, help="Request timeout in seconds")
    return parser


def read_input(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    try:
        with open(path, encoding="utf-8") as f:
            return f.read()
    except OSError as e:
        raise CLIError(f"Failed to read input file {path}: {e}") from e


def run_remote(task_id: str, input_json: str, *, server: str, timeout: float,
               http: httpx.Client | None = None) -> bytes:
    """Send one task to the server and return the MessagePack-encoded output."""
    task = TASKS[task_id]
    codec = MsgPackCodec()

    try:
        task_input = task.input_model.model_validate_json(input_json)
    except ValidationError as e:
        raise CLIError(f"Failed to parse input JSON: {e}") from e

    payload = {
        "task_id": task_id,
        "input": base64.b64encode(codec.encode(task_input)).decode("ascii"),
        "encoding": codec.name,
    }

    url = f"{server.rstrip('/')}/run"
    try:
        if http is not None:
            r = http.post(url, json=payload, timeout=timeout)
        else:
            with httpx.Client() as client:
                r = client.post(url, json=payload, timeout=timeout)
    except httpx.TimeoutException as e:
        raise CLIError(f"Request timed out after {timeout}s") from e
    except httpx.HTTPError as e:
        raise CLIError(f"Call to {server} failed: {e}") from e

    try:
        body = r.json()
    except ValueError as e:
        raise CLIError(f"Server returned HTTP {r.status_code}: {r.text[:200]}") from e

    if not body.get("ok"):
        raise CLIError(f"Shape execution failed: {body.get('error') or r.text}")
    return base64.b64decode(body["output"])


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        output = run_remote(args.task, read_input(args.input), server=args.server, timeout=args.timeout)
    except CLIError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    if args.format == "msgpack":
        sys.stdout.buffer.write(output)
    else:
        result = MsgPackCodec().decode(output, TASKS[args.task].output_model)
        print(json.dumps(result.model_dump(), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
