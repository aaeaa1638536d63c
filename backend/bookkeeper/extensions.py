# Overview: Shared SQLAlchemy and Alembic handles, bound to the app in create_app().
# Index names follow the "ix_<table>_<column>" pattern used by the migrations.

from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import MetaData

db = SQLAlchemy(metadata=MetaData(naming_convention={"ix": "ix_%(column_0_label)s"}))
migrate = Migrate()
