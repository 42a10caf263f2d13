"""
Briefed
SQLAlchemy models package.

All model modules import the shared ``db`` instance from here; it is bound
to the Flask app inside ``create_app``.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
