from datetime import datetime
from config.database import db


class SequenceNumber(db.Model):
    """Sequence numbers for documents"""
    __tablename__ = 'sequence_numbers'

    id = db.Column(db.Integer, primary_key=True)

    document_type = db.Column(db.String(30), nullable=False, unique=True)
    # quotation, invoice, shipment, customer

    prefix = db.Column(db.String(20))
    current_number = db.Column(db.Integer, nullable=False, default=0)
    number_length = db.Column(db.Integer, default=3)

    last_generated_at = db.Column(db.DateTime, default=datetime.utcnow)

    def format_number(self, number):
        return f"{self.prefix or ''}{str(number).zfill(self.number_length or 0)}"

    def __repr__(self):
        return f'<SequenceNumber {self.document_type}:{self.current_number}>'
