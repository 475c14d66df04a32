from datetime import datetime
import uuid

from .extensions import db


def new_document_id() -> str:
    return uuid.uuid4().hex


class Document(db.Model):
    __tablename__ = "documents"

    id = db.Column(db.String(32), primary_key=True, default=new_document_id)
    filename = db.Column(db.String(255), nullable=False)
    stored_name = db.Column(db.String(255), nullable=False, unique=True)
    file_size = db.Column(db.Integer, nullable=False, default=0)
    page_count = db.Column(db.Integer, nullable=False, default=0)
    text_length = db.Column(db.Integer, nullable=False, default=0)
    raw_text = db.Column(db.Text, nullable=False, default="")
    uploaded_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self, include_text: bool = False) -> dict:
        payload = {
            "fileId": self.id,
            "filename": self.filename,
            "fileSize": self.file_size,
            "numPages": self.page_count,
            "textLength": self.text_length,
            "uploadDate": self.uploaded_at.isoformat() if self.uploaded_at else None,
        }
        if include_text:
            payload["text"] = self.raw_text
        return payload
