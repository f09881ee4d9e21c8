from logging.config import fileConfig
import os
import sys
from asyncio import run

from alembic import context
from sqlalchemy import pool
from sqlalchemy.ext.asyncio import async_engine_from_config

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from recuerdos.core.config import get_settings
from recuerdos.core.database import Base, async_database_url, engine_connect_args
from recuerdos.models import memory, user  # noqa: F401

settings = get_settings()
config = context.config
database_url = async_database_url(settings).render_as_string(hide_password=False)
config.set_main_option("sqlalchemy.url", database_url.replace("%", "%%"))

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        version_table="alembic_version",
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = async_engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
        connect_args=engine_connect_args(settings),
    )

    async def do_migrations() -> None:
        def run_migrations_in_sync(sync_connection) -> None:
            context.configure(
                connection=sync_connection,
                target_metadata=target_metadata,
                version_table="alembic_version",
            )
            with context.begin_transaction():
                context.run_migrations()

        async with connectable.connect() as connection:
            await connection.run_sync(run_migrations_in_sync)

        await connectable.dispose()

    run(do_migrations())


run_migrations_online() if not context.is_offline_mode() else run_migrations_offline()
