"""Allow ``python -m bulkspine.cli``."""

from bulkspine.cli.app import app

app()
