import sys

from .cli import app

app(sys.argv[1:])
