# Overview: Flask extension instances for database and migrations.

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from sqlalchemy import event

db = SQLAlchemy()
migrate = Migrate()


def configure_sqlite(engine) -> None:
    """
    Let SQLAlchemy own transaction boundaries on pysqlite so SAVEPOINTs nest
    properly, and enforce foreign keys.

    Transactions start with BEGIN IMMEDIATE: the write lock is taken up front,
    so concurrent writers queue on the busy timeout instead of failing when a
    read lock cannot be upgraded.
    """
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")
