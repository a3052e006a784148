from kpi_digest.cli import app

app()
