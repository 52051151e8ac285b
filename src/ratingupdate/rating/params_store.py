"""Persistence helpers for active rating parameter sets."""

from __future__ import annotations

import logging
from dataclasses import asdict

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ratingupdate.db.models import RatingParameterSet
from ratingupdate.rating.glicko import RatingParams

logger = logging.getLogger(__name__)

DEFAULT_PARAMS_VERSION = "defaults-v1"


def get_active_rating_params(
    session: Session,
    defaults: RatingParams | None = None,
) -> tuple[RatingParams, str]:
    """Return the active persisted rating params, or `defaults` if none are active."""
    if defaults is None:
        defaults = RatingParams()

    active = session.execute(
        select(RatingParameterSet)
        .where(RatingParameterSet.is_active.is_(True))
        .order_by(RatingParameterSet.created_at.desc(), RatingParameterSet.id.desc())
        .limit(1)
    ).scalar_one_or_none()
    if active is None:
        return defaults, DEFAULT_PARAMS_VERSION

    try:
        params = RatingParams(**active.params)
    except TypeError as exc:
        logger.warning(
            "Ignoring rating parameter set '%s' with unexpected keys: %s",
            active.name,
            exc,
        )
        return defaults, DEFAULT_PARAMS_VERSION

    return params, active.name


def persist_rating_params(
    session: Session,
    name: str,
    params: RatingParams,
    source: str = "manual",
    activate: bool = False,
) -> RatingParameterSet:
    """Persist a named rating params set and optionally activate it."""
    if activate:
        session.execute(update(RatingParameterSet).values(is_active=False))

    record = RatingParameterSet(
        name=name,
        params=asdict(params),
        source=source,
        is_active=activate,
    )
    session.add(record)
    session.flush()
    return record
