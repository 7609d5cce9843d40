from tilcheck.cli import cli

cli()
