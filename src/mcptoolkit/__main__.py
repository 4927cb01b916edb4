from mcptoolkit.cli import cli

cli()
