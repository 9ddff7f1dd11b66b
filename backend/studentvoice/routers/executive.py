from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..db import get_db
from ..metrics import get_all_executive_metrics, get_macro_metrics, list_suggestions


router = APIRouter(prefix="/executive", tags=["executive"])


@router.get("/metrics")
def executive_metrics(surveyId: Optional[int] = Query(default=None), db: Session = Depends(get_db)):
	return {"stats": get_all_executive_metrics(db, surveyId)}


@router.get("/suggestions")
def executive_suggestions(surveyId: Optional[int] = Query(default=None), db: Session = Depends(get_db)):
	return list_suggestions(db, surveyId)


@router.get("/macro-metrics")
def executive_macro_metrics(surveyId: Optional[int] = Query(default=None), db: Session = Depends(get_db)):
	return {"data": get_macro_metrics(db, surveyId)}
