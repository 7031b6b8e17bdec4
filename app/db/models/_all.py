# Importar todos los modelos para que Base.metadata los conozca
from app.db.models.user import User
from app.db.models.event import Event
from app.db.models.prediction import Prediction
