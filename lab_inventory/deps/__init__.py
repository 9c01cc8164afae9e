"""FastAPI dependencies that hand request handlers the application's shared objects."""
