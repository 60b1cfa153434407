import secrets
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pulsevote.db import get_db
from pulsevote.db_models import Membership, Organisation as DBOrganisation, RoleAssignment, User as DBUser
from pulsevote.models import JoinCodeResponse, JoinRequest, Member, Organisation, OrganisationCreate
from pulsevote.security import Principal, get_current_user, require_role
from pulsevote.security.logger import org_logger as logger

router = APIRouter(prefix="/api/organisations", tags=["organisations"])

ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
JOIN_CODE_LENGTH = 8
JOIN_CODE_ATTEMPTS = 5
# Largest primary key the store can hold (signed 64-bit).
MAX_ID = 2**63 - 1


def _generate_join_code() -> str:
    return "".join(secrets.choice(ALPHABET) for _ in range(JOIN_CODE_LENGTH))


def _fresh_join_code(db: Session) -> str:
    for _ in range(JOIN_CODE_ATTEMPTS):
        code = _generate_join_code()
        taken = db.execute(select(DBOrganisation.id).where(DBOrganisation.join_code == code)).first()
        if taken is None:
            return code
    raise RuntimeError("could not allocate a unique join code")


def get_organisation_or_404(db: Session, organisation_id: int) -> DBOrganisation:
    org = db.get(DBOrganisation, organisation_id) if 1 <= organisation_id <= MAX_ID else None
    if org is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="organisation_not_found")
    return org


def is_member(db: Session, organisation_id: int, user_id: int) -> bool:
    return db.get(Membership, (organisation_id, user_id)) is not None


def can_manage(org: DBOrganisation, user: Principal) -> bool:
    """Owners manage their organisation; admins manage every organisation."""
    return user.is_admin or (org.owner_id == user.user_id and user.has_role("manager"))


def can_view(db: Session, org: DBOrganisation, user: Principal) -> bool:
    return can_manage(org, user) or is_member(db, org.id, user.user_id)


def to_schema(org: DBOrganisation, user: Principal) -> Organisation:
    return Organisation(
        id=org.id,
        name=org.name,
        owner_id=org.owner_id,
        join_code=org.join_code if can_manage(org, user) else None,
        created_at=org.created_at,
    )


@router.post("/create-organisation", response_model=Organisation, status_code=status.HTTP_201_CREATED)
def create_organisation(
    payload: OrganisationCreate,
    user: Principal = Depends(require_role("manager")),
    db: Session = Depends(get_db),
) -> Organisation:
    owner = db.get(DBUser, user.user_id)
    if owner is None:
        # token outlived the account, e.g. after a reset
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="unauthenticated")

    org = DBOrganisation(name=payload.name, owner_id=owner.id, join_code=_fresh_join_code(db))
    db.add(org)
    db.flush()
    db.add(Membership(organisation_id=org.id, user_id=owner.id))
    db.add(RoleAssignment(user_id=owner.id, organisation_id=org.id, role="manager"))
    db.commit()
    db.refresh(org)
    logger.info(f"Organisation {org.id} '{org.name}' created by {user.email}")
    return to_schema(org, user)


@router.post("/generate-join-code/{organisation_id}", response_model=JoinCodeResponse)
def generate_join_code(
    organisation_id: int,
    user: Principal = Depends(require_role("manager", "admin")),
    db: Session = Depends(get_db),
) -> JoinCodeResponse:
    org = get_organisation_or_404(db, organisation_id)
    if not can_manage(org, user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="forbidden")

    # Replacing the column leaves exactly one active code.
    org.join_code = _fresh_join_code(db)
    db.commit()
    logger.info(f"Join code rotated for organisation {org.id} by {user.email}")
    return JoinCodeResponse(organisation_id=org.id, join_code=org.join_code)


@router.post("/join-organisation", response_model=Organisation)
def join_organisation(
    payload: JoinRequest,
    user: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Organisation:
    org = db.execute(
        select(DBOrganisation).where(DBOrganisation.join_code == payload.join_code)
    ).scalars().first()
    if org is None:
        logger.warning(f"Invalid join code attempt by {user.email}")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="invalid_join_code")
    if db.get(DBUser, user.user_id) is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="unauthenticated")
    if is_member(db, org.id, user.user_id):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="already_member")

    db.add(Membership(organisation_id=org.id, user_id=user.user_id))
    db.add(RoleAssignment(user_id=user.user_id, organisation_id=org.id, role="user"))
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="already_member")
    logger.info(f"{user.email} joined organisation {org.id}")
    return to_schema(org, user)


@router.get("/my-organisations", response_model=List[Organisation])
def my_organisations(
    user: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> List[Organisation]:
    stmt = (
        select(DBOrganisation)
        .join(Membership, Membership.organisation_id == DBOrganisation.id)
        .where(Membership.user_id == user.user_id)
        .order_by(DBOrganisation.id)
    )
    return [to_schema(org, user) for org in db.execute(stmt).scalars()]


@router.get("/get-members/{organisation_id}", response_model=List[Member])
def get_members(
    organisation_id: int,
    user: Principal = Depends(require_role("manager", "admin")),
    db: Session = Depends(get_db),
) -> List[Member]:
    org = get_organisation_or_404(db, organisation_id)
    if not can_manage(org, user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="forbidden")

    stmt = (
        select(Membership, DBUser)
        .join(DBUser, DBUser.id == Membership.user_id)
        .where(Membership.organisation_id == org.id)
        .order_by(Membership.joined_at, DBUser.id)
    )
    return [
        Member(user_id=u.id, email=u.email, joined_at=m.joined_at)
        for m, u in db.execute(stmt).all()
    ]
