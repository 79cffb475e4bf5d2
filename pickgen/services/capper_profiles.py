"""
Capper profile persistence.

A profile is the enabled-factor list and weights one capper uses for one
(sport, bet type).  A capper may keep several; the one flagged
``is_default`` is used by the wizard.  When a capper has never saved a
profile, the generated default from ``factors.config`` stands in.
"""

import logging
from typing import Dict, List, Optional

from pickgen.core.sport_config import BetType, Sport
from pickgen.factors.config import get_default_profile, validate_factor_weights
from pickgen.models import CapperProfile

logger = logging.getLogger(__name__)


def _row_to_dict(row: CapperProfile) -> Dict:
    return {
        "id": row.profile_id,
        "capper_id": row.capper_id,
        "sport": row.sport,
        "bet_type": row.bet_type,
        "name": row.name,
        "is_default": bool(row.is_default),
        "factors": list(row.factors or []),
    }


def load_capper_profile(db, capper_id: str, sport, bet_type) -> Dict:
    """The capper's default profile, else any active one, else the generated default."""
    sport, bet_type = Sport(sport), BetType(bet_type)
    if db is None:
        return get_default_profile(capper_id, sport, bet_type)

    rows = (
        db.query(CapperProfile)
        .filter(
            CapperProfile.capper_id == capper_id,
            CapperProfile.sport == sport.value,
            CapperProfile.bet_type == bet_type.value,
            CapperProfile.is_active.is_(True),
        )
        .order_by(CapperProfile.is_default.desc(), CapperProfile.updated_at.desc())
        .all()
    )
    if rows:
        return _row_to_dict(rows[0])

    logger.info("No saved profile for %s %s %s; using generated default", capper_id, sport.value, bet_type.value)
    return get_default_profile(capper_id, sport, bet_type)


def save_capper_profile(
    db,
    capper_id: str,
    sport,
    bet_type,
    factors: List[Dict],
    name: Optional[str] = None,
    is_default: bool = True,
) -> Dict:
    """Validate and upsert a profile.

    Raises:
        ValueError: The factor list fails validation.
    """
    sport, bet_type = Sport(sport), BetType(bet_type)
    errors = validate_factor_weights(factors, sport, bet_type)
    if errors:
        raise ValueError("; ".join(errors))

    profile_id = f"{capper_id}-{sport.value}-{bet_type.value}-{'default' if is_default else 'custom'}".lower()
    row = db.query(CapperProfile).filter(CapperProfile.profile_id == profile_id).first()
    if row is None:
        row = CapperProfile(
            profile_id=profile_id,
            capper_id=capper_id,
            sport=sport.value,
            bet_type=bet_type.value,
        )
        db.add(row)

    if is_default:
        # Only one default per capper/sport/bet type.
        others = (
            db.query(CapperProfile)
            .filter(
                CapperProfile.capper_id == capper_id,
                CapperProfile.sport == sport.value,
                CapperProfile.bet_type == bet_type.value,
                CapperProfile.profile_id != profile_id,
            )
            .all()
        )
        for other in others:
            other.is_default = False

    row.name = name or f"{capper_id.upper()} {sport.value} {bet_type.value}"
    row.factors = [
        {
            "key": f["key"],
            "enabled": bool(f.get("enabled", True)),
            "weight": float(f.get("weight", 0)),
            "data_source": f.get("data_source"),
        }
        for f in factors
    ]
    row.is_default = is_default
    row.is_active = True
    db.commit()

    logger.info("Saved capper profile %s (%d factors)", profile_id, len(factors))
    return _row_to_dict(row)


def enabled_factor_weights(profile: Dict, exclude: frozenset = frozenset()) -> Dict[str, float]:
    """key → weight for enabled factors, skipping ``exclude`` keys."""
    return {
        f["key"]: float(f.get("weight", 0) or 0)
        for f in profile.get("factors", [])
        if f.get("enabled", True) and f["key"] not in exclude
    }
