# backend/tests/factories/base.py

from factory.alchemy import SQLAlchemyModelFactory


class BaseFactory(SQLAlchemyModelFactory):
    """Base factory with session management for all test factories."""

    class Meta:
        abstract = True
        sqlalchemy_session_persistence = "commit"

    @classmethod
    def _create(cls, model_class, *args, **kwargs):
        """Refuse to persist without a session bound by a test fixture."""
        if cls._meta.sqlalchemy_session is None:
            raise RuntimeError(
                f"{cls.__name__} has no session; use the db_session fixture or .build()"
            )
        return super()._create(model_class, *args, **kwargs)

    @classmethod
    def bind_session(cls, session):
        cls._meta.sqlalchemy_session = session

    @classmethod
    def reset_session(cls):
        """Reset the session (useful between tests)."""
        cls._meta.sqlalchemy_session = None
