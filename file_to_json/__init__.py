"""Convert uploaded files into structured JSON records."""
