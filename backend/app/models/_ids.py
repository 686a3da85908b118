"""Primary keys are opaque UUID strings (generated app-side so SQLite and Postgres agree)."""
import uuid


def new_id() -> str:
    return str(uuid.uuid4())
