from app.fred import create_app

app = create_app()
