from .cli import app

app(prog_name="at2felt")
