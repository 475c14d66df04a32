from flask_sqlalchemy import SQLAlchemy

# Global SQLAlchemy instance so models can share it without circular imports.
db = SQLAlchemy()
