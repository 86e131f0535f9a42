"""
Procurement Approvals — shared SQLAlchemy handle.

Every model module imports ``db`` from here:

    from procurement.models import db
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
