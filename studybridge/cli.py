import asyncio
import json
import logging

import typer

from studybridge.actions import ACTIONS
from studybridge.config import BIGBOOK_KEY_ENV, DEEPSEEK_KEY_ENV, OPENAI_KEY_ENV, load_settings
from studybridge.errors import StudyBridgeError
from studybridge.handlers import error_payload, handle_generation, handle_search
from studybridge.providers import get_provider, list_providers


app = typer.Typer(help="Book search fan-out and AI generation failover for study planning")

GENERATION_ENV = {
    "openai": OPENAI_KEY_ENV,
    "deepseek": DEEPSEEK_KEY_ENV,
}

SEARCH_ENV = {
    "big_book_api": BIGBOOK_KEY_ENV,
}

RESULT_HEADERS = ["Source", "Title", "Author", "Year", "Id"]


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command()
def search(
    query: str,
    limit: int = typer.Option(20, min=0, help="Total result budget across providers"),
    as_json: bool = typer.Option(False, "--json", is_flag=True, help="Print the raw response body"),
) -> None:
    settings = load_settings()
    try:
        body = asyncio.run(handle_search({"query": query, "limit": limit}, settings=settings))
    except StudyBridgeError as exc:
        _fail(exc)

    if as_json:
        typer.echo(json.dumps(body, indent=2, ensure_ascii=False))
        return

    items = body.get("items", [])
    if not items:
        typer.echo("No results.")
    else:
        rows = [
            [
                str(item["source"]),
                _truncate_cell(str(item["title"])),
                _truncate_cell(str(item["author"]), 30),
                str(item["year"]) if item["year"] is not None else "-",
                _truncate_cell(str(item["external_id"]), 30),
            ]
            for item in items
        ]
        typer.echo(_render_table(RESULT_HEADERS, rows))
    quota = body.get("bigBookQuota")
    if quota:
        typer.echo(f"Big Book API quota: {quota['left']} left of {quota['limit']}")


@app.command()
def generate(
    action: str = typer.Argument(..., help=f"One of: {', '.join(ACTIONS)}"),
    topic: str = typer.Option("", help="Topic name"),
    subject: str = typer.Option("", help="Subject name"),
) -> None:
    settings = load_settings()
    body: dict[str, object] = {"action": action}
    if topic:
        body["topic"] = {"name": topic}
    if subject:
        body["subject"] = {"name": subject}
    try:
        result = asyncio.run(handle_generation(body, settings=settings))
    except StudyBridgeError as exc:
        _fail(exc)
    typer.echo(json.dumps(result, indent=2, ensure_ascii=False))


@app.command()
def providers() -> None:
    credentials = load_settings().credentials
    keys = {
        BIGBOOK_KEY_ENV: credentials.big_book_api_key,
        OPENAI_KEY_ENV: credentials.openai_api_key,
        DEEPSEEK_KEY_ENV: credentials.deepseek_api_key,
    }
    for name in list_providers():
        env_var = SEARCH_ENV.get(name.value)
        if get_provider(name).requires_key and env_var:
            status = "set" if keys.get(env_var) else "missing (skipped)"
            typer.echo(f"search {name.value} ({env_var}): {status}")
        else:
            typer.echo(f"search {name.value}: no key needed")
    for name, env_var in GENERATION_ENV.items():
        status = "set" if keys.get(env_var) else "missing"
        typer.echo(f"generation {name} ({env_var}): {status}")


def _fail(exc: StudyBridgeError) -> None:
    status, payload = error_payload(exc)
    typer.echo(f"{payload['error']} ({status}): {payload['message']}", err=True)
    raise typer.Exit(code=1)


def _truncate_cell(text: str, limit: int = 60) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3].rstrip() + "..."


def _render_table(headers: list[str], rows: list[list[str]]) -> str:
    if not rows:
        return ""
    widths = [len(h) for h in headers]
    for row in rows:
        for idx, cell in enumerate(row):
            widths[idx] = max(widths[idx], len(cell))

    def format_row(row: list[str]) -> str:
        return " | ".join(cell.ljust(widths[idx]) for idx, cell in enumerate(row))

    lines = [format_row(headers), "-+-".join("-" * w for w in widths)]
    lines.extend(format_row(row) for row in rows)
    return "\n".join(lines)


if __name__ == "__main__":
    app()
