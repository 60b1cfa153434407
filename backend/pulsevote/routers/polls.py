from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pulsevote.db import get_db
from pulsevote.db_models import Poll as DBPoll, PollOption as DBPollOption, PollVote
from pulsevote.models import Poll, PollCreate, PollOption, PollResults, VoteRequest, VoteResponse
from pulsevote.routers.organisations import MAX_ID, can_manage, can_view, get_organisation_or_404, is_member
from pulsevote.security import Principal, get_current_user, require_role
from pulsevote.security.logger import poll_logger as logger

router = APIRouter(prefix="/api/polls", tags=["polls"])


def _get_poll_or_404(db: Session, poll_id: int) -> DBPoll:
    poll = db.get(DBPoll, poll_id) if 1 <= poll_id <= MAX_ID else None
    if poll is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="poll_not_found")
    return poll


def _to_schema(poll: DBPoll) -> Poll:
    return Poll(
        id=poll.id,
        organisation_id=poll.organisation_id,
        question=poll.question,
        options=[o.text for o in poll.options],
        is_open=poll.is_open,
        created_at=poll.created_at,
    )


def _managed_poll(db: Session, poll_id: int, user: Principal) -> DBPoll:
    poll = _get_poll_or_404(db, poll_id)
    if not can_manage(poll.organisation, user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="forbidden")
    return poll


@router.post("/create-poll", response_model=Poll, status_code=status.HTTP_201_CREATED)
def create_poll(
    payload: PollCreate,
    user: Principal = Depends(require_role("manager", "admin")),
    db: Session = Depends(get_db),
) -> Poll:
    org = get_organisation_or_404(db, payload.organisation_id)
    if not can_manage(org, user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="forbidden")

    poll = DBPoll(organisation_id=org.id, question=payload.question, is_open=True, created_by=user.user_id)
    poll.options = [DBPollOption(position=i, text=text, votes=0) for i, text in enumerate(payload.options)]
    db.add(poll)
    db.commit()
    db.refresh(poll)
    logger.info(f"Poll {poll.id} created in organisation {org.id} by {user.email}")
    return _to_schema(poll)


@router.get("/get-polls/{organisation_id}", response_model=List[Poll])
def get_polls(
    organisation_id: int,
    user: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> List[Poll]:
    org = get_organisation_or_404(db, organisation_id)
    if not can_view(db, org, user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="forbidden")

    stmt = (
        select(DBPoll)
        .where(DBPoll.organisation_id == org.id)
        .order_by(DBPoll.created_at.desc(), DBPoll.id.desc())
    )
    return [_to_schema(p) for p in db.execute(stmt).scalars()]


@router.post("/vote/{poll_id}", response_model=VoteResponse)
def vote(
    poll_id: int,
    payload: VoteRequest,
    user: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> VoteResponse:
    poll = _get_poll_or_404(db, poll_id)
    if not is_member(db, poll.organisation_id, user.user_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="forbidden")
    if not poll.is_open:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="poll_closed")
    if payload.option_index < 0 or payload.option_index >= len(poll.options):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="invalid_option")

    option = poll.options[payload.option_index]
    db.add(PollVote(poll_id=poll.id, user_id=user.user_id, option_id=option.id))
    db.execute(
        update(DBPollOption)
        .where(DBPollOption.id == option.id)
        .values(votes=DBPollOption.votes + 1)
    )
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="already_voted")

    db.refresh(poll)
    new_total = sum(o.votes for o in poll.options)
    logger.info(f"Vote recorded on poll {poll.id} by {user.email}")
    return VoteResponse(poll_id=poll.id, option_index=payload.option_index, new_total=new_total)


@router.get("/get-poll-results/{poll_id}", response_model=PollResults)
def get_poll_results(
    poll_id: int,
    user: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> PollResults:
    poll = _get_poll_or_404(db, poll_id)
    if not can_view(db, poll.organisation, user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="forbidden")

    options = [PollOption(index=o.position, text=o.text, votes=o.votes) for o in poll.options]
    return PollResults(
        poll_id=poll.id,
        question=poll.question,
        is_open=poll.is_open,
        options=options,
        total_votes=sum(o.votes for o in options),
    )


def _set_open(db: Session, poll_id: int, user: Principal, is_open: bool) -> Poll:
    poll = _managed_poll(db, poll_id, user)
    if poll.is_open != is_open:
        poll.is_open = is_open
        db.commit()
        db.refresh(poll)
        logger.info(f"Poll {poll.id} {'opened' if is_open else 'closed'} by {user.email}")
    return _to_schema(poll)


@router.post("/close/{poll_id}", response_model=Poll)
def close_poll(
    poll_id: int,
    user: Principal = Depends(require_role("manager", "admin")),
    db: Session = Depends(get_db),
) -> Poll:
    return _set_open(db, poll_id, user, False)


@router.post("/open/{poll_id}", response_model=Poll)
def open_poll(
    poll_id: int,
    user: Principal = Depends(require_role("manager", "admin")),
    db: Session = Depends(get_db),
) -> Poll:
    return _set_open(db, poll_id, user, True)
