# backend/converter_wsgi.py
from converter import create_converter_app

app = create_converter_app()
