import typer

from .commands import config, provider, run

app = typer.Typer(help="LLM Orchestra CLI: routed, traced completions across providers")

# Top-level commands
app.command("complete", help="Send a completion request with failover")(run.complete)
app.command("providers", help="List configured providers")(provider.list_providers)
app.command("resolve", help="Show which provider serves a model")(provider.resolve)
app.command("models", help="List the models a provider serves")(provider.list_models)

# Sub-commands
app.add_typer(config.app, name="config", help="Inspect configuration")


def main():
    app()


if __name__ == "__main__":
    main()
