from node_wallet_ai.cli.app import app

app()
