from changeroom import create_app

app = create_app()
