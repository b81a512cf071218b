import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID

from intent_engine.core.constants import TOP_SIGNALS_LIMIT, TOP_SIGNALS_WINDOW_DAYS
from intent_engine.repositories.unit_of_work import IntentRepositories
from intent_engine.schemas.common import SubjectType
from intent_engine.services.bands import band_from_score, should_emit
from intent_engine.services.rollup_aggregator import RollupAggregator
from intent_engine.services.stage_classifier import StageClassifier

logger = logging.getLogger(__name__)

_ANON = SubjectType.anonymous.value
_IDENTITY = SubjectType.identity.value


def _latest(*values: Optional[datetime]) -> Optional[datetime]:
    present = [v for v in values if v is not None]
    return max(present) if present else None


class IdentityMergeResolver:
    """Tie an anonymous visitor to a known identity and merge their intent.

    The identity's total grows by the anonymous total not yet merged from
    that visitor (tracked per anonymous id in the identity's metadata), so
    repeating an identify call never counts the same activity twice.  The
    anonymous aggregate is left untouched.

    When the email belongs to a marketing lead, the visitor's events move
    to the lead and both rollups plus the lead's stage are refreshed.
    """

    def __init__(
        self,
        rollup_aggregator: RollupAggregator,
        stage_classifier: Optional[StageClassifier] = None,
    ) -> None:
        self._aggregator = rollup_aggregator
        self._classifier = stage_classifier

    async def identify(
        self,
        anonymous_id: UUID,
        email: str,
        repos: IntentRepositories,
        name: Optional[str] = None,
        source: Optional[str] = None,
    ) -> Dict[str, Any]:
        email = email.strip().lower()
        now = datetime.now(timezone.utc)

        identity_id = await repos.identities.upsert_by_email(email, name, source)
        sessions = await repos.identities.link_sessions(anonymous_id, identity_id)
        backfilled = await repos.events.backfill_identity(anonymous_id, identity_id)

        anon_row = await repos.subject_scores.get(_ANON, anonymous_id)
        ident_row = await repos.subject_scores.get(_IDENTITY, identity_id)
        prev_anon = anon_row.total_score if anon_row else 0
        prev_identity = ident_row.total_score if ident_row else 0
        previous_band = ident_row.last_threshold_emitted if ident_row else None
        metadata: Dict[str, Any] = dict(
            (ident_row.subject_metadata or {}) if ident_row else {}
        )

        merged_from: Dict[str, int] = dict(metadata.get("merged_anonymous") or {})
        already_merged = int(merged_from.get(str(anonymous_id), 0))
        delta = max(0, prev_anon - already_merged)
        merged_from[str(anonymous_id)] = max(prev_anon, already_merged)

        total = prev_identity + delta
        last_event_at = _latest(
            anon_row.last_event_at if anon_row else None,
            ident_row.last_event_at if ident_row else None,
        )
        await repos.subject_scores.set_total(_IDENTITY, identity_id, total, last_event_at)

        band = band_from_score(total)
        emitted = should_emit(previous_band, band)
        if emitted:
            await repos.subject_scores.update_fields(
                _IDENTITY, identity_id, {"last_threshold_emitted": band}
            )
            await repos.signals.create(
                subject_id=identity_id,
                band=band,
                score_7d=total,
                score_30d=total,
                last_event_at=last_event_at,
                emitted_at=now,
                payload={
                    "identity_id": str(identity_id),
                    "anonymous_id": str(anonymous_id),
                    "score": total,
                    "state": band,
                    "source": "identify",
                    "timestamp": now.isoformat(),
                },
            )

        lead = await repos.leads.get_by_email(email)
        if lead is not None:
            attached = await repos.events.attach_to_lead(anonymous_id, lead.id)
            if attached:
                await self._aggregator.recompute(lead.id, "lead", repos.rollups, now=now)
                # The visitor no longer owns the attached events
                await self._aggregator.recompute(
                    anonymous_id, _ANON, repos.rollups, now=now
                )
                if self._classifier is not None:
                    await self._classifier.classify_lead(lead.id, repos, now=now)
                logger.info(
                    "Attached %d anonymous events of %s to lead %s",
                    attached,
                    anonymous_id,
                    lead.id,
                )

        metadata["merged_anonymous"] = merged_from
        metadata["top_events"] = await self._top_events(identity_id, repos, now)
        await repos.subject_scores.update_fields(
            _IDENTITY, identity_id, {"metadata": metadata}
        )

        await repos.commit()

        logger.info(
            "Identified %s as %s (sessions=%d, events=%d, total=%d, band=%s, emitted=%s)",
            anonymous_id,
            identity_id,
            sessions,
            backfilled,
            total,
            band,
            emitted,
        )
        return {
            "identity_id": identity_id,
            "merged": prev_anon > 0 or prev_identity > 0,
            "previous_anonymous_score": prev_anon,
            "previous_identity_score": prev_identity,
            "total_identity_score": total,
            "band": band,
            "threshold_emitted": emitted,
        }

    @staticmethod
    async def _top_events(
        identity_id: UUID, repos: IntentRepositories, now: datetime
    ) -> List[Dict[str, Any]]:
        rows = await repos.events.top_scored_for_identity(
            identity_id,
            since=now - timedelta(days=TOP_SIGNALS_WINDOW_DAYS),
            limit=TOP_SIGNALS_LIMIT,
        )
        return [
            {
                "event_id": str(event.id),
                "event_type": event.event_type,
                "score": score.score,
                "occurred_at": event.occurred_at.isoformat(),
            }
            for event, score in rows
        ]
