from __future__ import annotations

from typing import Optional, Sequence


def console():
    from rich.console import Console

    return Console()


def ask_str(prompt: str, default: Optional[str] = None, allow_blank: bool = False) -> str:
    from rich.prompt import Prompt

    while True:
        v = Prompt.ask(prompt, default=default)
        v = "" if v is None else str(v)
        if v.strip() or allow_blank:
            return v.strip()


def ask_secret(prompt: str) -> str:
    from rich.prompt import Prompt

    while True:
        v = Prompt.ask(prompt, password=True)
        if v:
            return v


def ask_bool(prompt: str, default: bool) -> bool:
    from rich.prompt import Confirm

    return bool(Confirm.ask(prompt, default=default))


def ask_choice(prompt: str, choices: Sequence[str], default: str) -> str:
    """Ask until the answer matches one of `choices` (case-insensitive); blank means default."""
    allowed = {c.lower(): c for c in choices}
    while True:
        raw = ask_str(f"{prompt} ({'/'.join(choices)})", default=default, allow_blank=True).lower()
        if not raw:
            return default
        if raw in allowed:
            return allowed[raw]
        console().print(f"Invalid choice: {raw}", style="red", markup=False)


def section(title: str) -> None:
    console().rule(f"[bold]{title}[/bold]")
