from radarlink.cli.main import cli

cli()
