from alembic import context
from sqlalchemy import create_engine

from llm_jp_vocab import db

config = context.config
target_metadata = db.Base.metadata


def _url() -> str:
    return config.get_main_option("sqlalchemy.url") or f"sqlite:///{db.DB_PATH}"


def run_migrations_offline() -> None:
    context.configure(url=_url(), target_metadata=target_metadata, literal_binds=True)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = create_engine(_url())
    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)
        with context.begin_transaction():
            context.run_migrations()
    connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
