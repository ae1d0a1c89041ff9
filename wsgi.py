from taxonomy import create_app

app = create_app()
