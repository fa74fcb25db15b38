from __future__ import annotations

import sys
from typing import Callable, Sequence, TextIO, TypeVar

T = TypeVar("T")


def _ask(question: str, *, input_fn: Callable[[str], str], out: TextIO) -> str:
    out.write(question)
    out.flush()
    try:
        return input_fn("").strip()
    except EOFError:
        return ""


def select_multiple(
    choices: Sequence[tuple[str, T]],
    message: str = "Select",
    *,
    input_fn: Callable[[str], str] = input,
    out: TextIO | None = None,
) -> list[T]:
    """
    Print a numbered list and read a comma-separated pick.

    An empty answer or ``all`` picks everything; invalid numbers are ignored.
    """
    out = out or sys.stderr
    if not choices:
        return []

    for i, (label, _) in enumerate(choices, start=1):
        out.write(f"  {i}) {label}\n")
    out.write("\n")

    answer = _ask(
        f'  {message} (1-{len(choices)}, comma-separated, or "all") [all]: ',
        input_fn=input_fn,
        out=out,
    )
    if answer == "" or answer.lower() == "all":
        return [value for _, value in choices]

    picked: list[int] = []
    for part in answer.split(","):
        part = part.strip()
        if not part.isdigit():
            continue
        idx = int(part)
        if 1 <= idx <= len(choices) and idx not in picked:
            picked.append(idx)

    if not picked:
        out.write("  No valid selection. Aborting.\n")
        return []
    return [choices[i - 1][1] for i in picked]


def select_one(
    choices: Sequence[tuple[str, T]],
    message: str = "Select",
    *,
    input_fn: Callable[[str], str] = input,
    out: TextIO | None = None,
) -> T | None:
    out = out or sys.stderr
    if not choices:
        return None
    if len(choices) == 1:
        return choices[0][1]

    for i, (label, _) in enumerate(choices, start=1):
        out.write(f"  {i}) {label}\n")
    out.write("\n")

    answer = _ask(f"  {message} (1-{len(choices)}) [1]: ", input_fn=input_fn, out=out)
    if answer == "":
        return choices[0][1]
    if not answer.isdigit() or not 1 <= int(answer) <= len(choices):
        out.write("  Invalid selection. Using default (1).\n")
        return choices[0][1]
    return choices[int(answer) - 1][1]
