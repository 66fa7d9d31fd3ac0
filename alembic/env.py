from logging.config import fileConfig
from sqlalchemy import engine_from_config, pool
from alembic import context

# =========================================================
# Alembic Config
# =========================================================
config = context.config

# Set up logging
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# =========================================================
# Import settings and models
# =========================================================
from app.config import settings
from app.models import Base  # noqa: F401 - registers every table on the metadata

config.set_main_option("sqlalchemy.url", settings.DATABASE_URL.replace("%", "%%"))

target_metadata = Base.metadata

# =========================================================
# Offline migrations
# =========================================================
def run_migrations_offline():
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()

# =========================================================
# Online migrations
# =========================================================
def run_migrations_online():
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True
        )

        with context.begin_transaction():
            context.run_migrations()

# =========================================================
# Entry point
# =========================================================
if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
