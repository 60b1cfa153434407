from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from pulsevote.db import get_db
from pulsevote.db_models import Membership, Organisation as DBOrganisation, User as DBUser
from pulsevote.models import CurrentUser, RoleOut
from pulsevote.routers.organisations import to_schema
from pulsevote.security import Principal, get_current_user
from pulsevote.security.tokens import role_claims

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("/me", response_model=CurrentUser)
def me(user: Principal = Depends(get_current_user), db: Session = Depends(get_db)) -> CurrentUser:
    """Identity, live role set and memberships; the client shell renders from this."""
    record = db.get(DBUser, user.user_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="unauthenticated")

    orgs = db.execute(
        select(DBOrganisation)
        .join(Membership, Membership.organisation_id == DBOrganisation.id)
        .where(Membership.user_id == record.id)
        .order_by(DBOrganisation.id)
    ).scalars()
    return CurrentUser(
        id=record.id,
        email=record.email,
        roles=[RoleOut(**claim) for claim in role_claims(record.roles)],
        organisations=[to_schema(org, user) for org in orgs],
    )
