"""
Briefsmith
SQLAlchemy extension instance shared by all models.

Usage:
    from briefsmith.models import db
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
