import typer

from .commands.discord import register_discord_commands
from .commands.root import register_root_commands
from .commands.slack import register_slack_commands
from .commands.utils import get_crossbot_version, raise_exit

app = typer.Typer(add_completion=False)
discord_app = typer.Typer(add_completion=False)
slack_app = typer.Typer(add_completion=False)


def _version_callback(value: bool) -> None:
    if not value:
        return
    typer.echo(f"crossbot {get_crossbot_version()}")
    raise typer.Exit(code=0)


@app.callback()
def _root(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
) -> None:
    return


def main() -> None:
    """Entrypoint for CLI execution."""
    app()


register_root_commands(app, raise_exit=raise_exit)
app.add_typer(discord_app, name="discord", help="Discord bot commands.")
register_discord_commands(discord_app, raise_exit=raise_exit)
app.add_typer(slack_app, name="slack", help="Slack bot commands.")
register_slack_commands(slack_app, raise_exit=raise_exit)
