# Overview: Flask extension instances shared by models, services, and the app factory.

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

db = SQLAlchemy()
migrate = Migrate()
