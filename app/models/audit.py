"""Audit models for MediCourier"""
from datetime import datetime
from config.database import db


class ActivityLog(db.Model):
    """Activity log for tracking user actions"""
    __tablename__ = 'activity_logs'

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey('users.id'))
    user_name = db.Column(db.String(200))

    activity_type = db.Column(db.String(50), nullable=False)
    description = db.Column(db.String(500), nullable=False)

    entity_type = db.Column(db.String(50))
    entity_id = db.Column(db.Integer)
    entity_number = db.Column(db.String(50))

    extra_data = db.Column(db.JSON, default=dict)

    ip_address = db.Column(db.String(45))
    user_agent = db.Column(db.String(500))

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    __table_args__ = (
        db.Index('idx_activity_type', 'activity_type'),
        db.Index('idx_activity_entity', 'entity_type', 'entity_id'),
    )

    def __repr__(self):
        return f'<ActivityLog {self.activity_type}>'
