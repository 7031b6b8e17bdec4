from fastapi import APIRouter, Depends
from app.db.session import SessionLocal
from app.core.clock import utcnow
from app.core.deps import get_current_user
from app.schemas.prediction import PredictionUpsert, PredictionOut
from app.services.predictions import upsert_prediction, get_prediction

router = APIRouter(prefix="/predictions", tags=["Predictions"])

def _upsert(payload: PredictionUpsert, current_user):
    db = SessionLocal()
    try:
        prediction = upsert_prediction(
            db,
            user_id=current_user.id,
            event_id=payload.event_id,
            season_year=payload.season_year,
            picks=payload.picks,
            now=utcnow(),
        )
        return {"prediction": PredictionOut.from_model(prediction)}
    finally:
        db.close()

@router.post("/upsert")
def upsert(payload: PredictionUpsert, current_user = Depends(get_current_user)):
    return _upsert(payload, current_user)

# Alias que usa el front al guardar un solo podio
@router.post("/merge-upsert-top3")
def merge_upsert_top3(payload: PredictionUpsert, current_user = Depends(get_current_user)):
    return _upsert(payload, current_user)

@router.get("/{event_id}")
def get_my_prediction(
    event_id: str,
    season_year: int,
    current_user = Depends(get_current_user)
):
    db = SessionLocal()
    prediction = get_prediction(db, current_user.id, event_id, season_year)
    db.close()

    if not prediction:
        return {"prediction": None}
    return {"prediction": PredictionOut.from_model(prediction)}
