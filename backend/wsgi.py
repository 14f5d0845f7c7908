from dotenv import load_dotenv

load_dotenv()

from gamenight.server import create_app  # noqa: E402

app, socketio = create_app()
