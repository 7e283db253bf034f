from syncwatch.cli import app


app(prog_name="sw")
