from contextlib import contextmanager


@contextmanager
def transaction(session):
    """
    Scope one unit of work: commit when the block finishes, roll back on any
    exception and re-raise it. Commit and rollback both hand the connection
    back to the pool.
    """
    try:
        yield session
        session.commit()
    except BaseException:
        session.rollback()
        raise


@contextmanager
def session_scope(session_factory):
    """Like transaction(), but owns the session and always closes it."""
    session = session_factory()
    try:
        with transaction(session):
            yield session
    finally:
        session.close()
