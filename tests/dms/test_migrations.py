from pathlib import Path

from sqlalchemy import create_engine, inspect, text

from packages.legal_dms.migrate import MIGRATIONS_DIR, discover_migrations, run_migrations
from packages.legal_dms.models import DEFAULT_SYSTEM_SETTINGS, Base
from packages.legal_dms.policy import ROLE_PERMISSIONS
from packages.legal_dms.schema.enums import ENUM_DEFINITIONS, render_enum_sql


def test_bundled_migrations_are_ordered():
    names = [path.name for path in discover_migrations()]
    assert names == [
        "0001_initial_schema.sql",
        "0002_seed_roles.sql",
        "0003_system_settings.sql",
    ]


def test_migrations_declare_every_enum_and_table():
    sql = "\n".join(path.read_text(encoding="utf-8") for path in discover_migrations())
    for definition in ENUM_DEFINITIONS:
        assert definition.render_sql() in sql
    for table in Base.metadata.tables:
        assert f"CREATE TABLE IF NOT EXISTS {table} (" in sql


def test_role_seed_covers_builtin_roles():
    sql = (MIGRATIONS_DIR / "0002_seed_roles.sql").read_text(encoding="utf-8")
    for role in ROLE_PERMISSIONS:
        assert f"('{role}'," in sql
    assert "ON CONFLICT (name) DO NOTHING" in sql


def test_render_enum_sql_joins_definitions():
    rendered = render_enum_sql()
    assert rendered.count("CREATE TYPE") == len(ENUM_DEFINITIONS)
    assert "CREATE TYPE share_status AS ENUM ('pending','accepted','declined','expired','revoked');" in rendered


def _write(directory: Path, name: str, sql: str) -> None:
    (directory / name).write_text(sql, encoding="utf-8")


def test_run_migrations_applies_pending_once(tmp_path):
    _write(tmp_path, "0001_widgets.sql", "CREATE TABLE widgets (id INTEGER PRIMARY KEY)")
    _write(tmp_path, "0002_gadgets.sql", "CREATE TABLE gadgets (id INTEGER PRIMARY KEY)")
    _write(tmp_path, "notes.sql", "this is not a migration")
    engine = create_engine(f"sqlite:///{tmp_path / 'migrations.db'}")
    try:
        assert run_migrations(engine, tmp_path, dry_run=True) == [
            "0001_widgets.sql",
            "0002_gadgets.sql",
        ]
        assert "widgets" not in inspect(engine).get_table_names()

        applied = run_migrations(engine, tmp_path)
        assert applied == ["0001_widgets.sql", "0002_gadgets.sql"]
        assert {"widgets", "gadgets", "schema_migrations"} <= set(inspect(engine).get_table_names())

        _write(tmp_path, "0003_gizmos.sql", "CREATE TABLE gizmos (id INTEGER PRIMARY KEY)")
        assert run_migrations(engine, tmp_path) == ["0003_gizmos.sql"]
        assert run_migrations(engine, tmp_path) == []

        with engine.connect() as conn:
            recorded = conn.execute(text("SELECT filename FROM schema_migrations")).scalars().all()
        assert sorted(recorded) == ["0001_widgets.sql", "0002_gadgets.sql", "0003_gizmos.sql"]
    finally:
        engine.dispose()


def test_run_migrations_without_files(tmp_path):
    engine = create_engine("sqlite://")
    try:
        assert run_migrations(engine, tmp_path) == []
    finally:
        engine.dispose()


def test_system_settings_migration_seeds_defaults():
    sql = (MIGRATIONS_DIR / "0003_system_settings.sql").read_text(encoding="utf-8")
    for key in DEFAULT_SYSTEM_SETTINGS:
        assert f"('{key}'," in sql
    assert "ON CONFLICT (key) DO NOTHING" in sql
