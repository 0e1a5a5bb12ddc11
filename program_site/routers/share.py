from fastapi import APIRouter, Depends, status
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session
from .. import database
from ..share import ShareTokenResolver

router = APIRouter(
    include_in_schema=False
)

@router.get("/share-program/{token}")
def share_program(token: str, db: Session = Depends(database.get_db)):
    resolver = ShareTokenResolver.for_session(db)
    return RedirectResponse(url=resolver.redirect_url(token), status_code=status.HTTP_302_FOUND)
