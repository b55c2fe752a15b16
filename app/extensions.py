from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager

# ======================
# Database
# ======================
db = SQLAlchemy()

# ======================
# Login Manager
# ======================
login_manager = LoginManager()
