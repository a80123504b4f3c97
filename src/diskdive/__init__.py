"""diskdive - interactive disk usage analyzer."""

__version__ = "0.1.0"
