from ulid import ULID


def get_id() -> str:
    """Generate a unique, time-ordered lock id using ULID"""
    return str(ULID())
