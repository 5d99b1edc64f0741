"""
Leaderboard Aggregator

Sums stored place credits over a season's completed rounds and ranks the
participants. Equal totals share a rank and the next distinct total skips
ahead, e.g. totals [10, 10, 8] rank [1, 1, 3].
"""

import logging

from app.models import Pick, Round, ScoreDetail, Season, SeasonParticipant, User
from app.services.settings_service import settings_service
from app.utils.cache_utils import LEADERBOARD, query_cache
from app.utils.errors import NotFoundError

logger = logging.getLogger(__name__)


def assign_ranks(entries):
    """
    Rank entries already sorted by total_points descending, in one pass.

    Each entry gets a "rank" key. The rank only advances past a run of ties
    once a lower score is reached, by the number of entries in that run.
    """
    current_score = None
    current_rank = 1
    tied_count = 0

    for entry in entries:
        if entry["total_points"] != current_score:
            current_rank += tied_count
            current_score = entry["total_points"]
            tied_count = 0
        tied_count += 1
        entry["rank"] = current_rank

    return entries


def round_points(credits, points):
    """Points for one round from {place: count} credits"""
    return sum(count * points.get(place, 0) for place, count in credits.items())


def pick_summary(pick, round_obj):
    """Leaderboard view of one pick; choices stay hidden until the round locks"""
    if pick is None:
        return None
    if round_obj.is_accepting_picks():
        return {"submitted": True}
    return {
        "submitted": True,
        "picks": [
            {"pick_number": item.pick_number, "team": item.team.name if item.team else None}
            for item in pick.items
        ],
        "admin_edited": pick.admin_edited,
        "original_pick": pick.original_pick,
        "editor_name": pick.edited_by.name if pick.edited_by else None,
        "edited_at": pick.edited_at.isoformat() if pick.edited_at else None,
    }


class LeaderboardService:
    def get_completed_rounds(self, season_id):
        return (
            Round.query.filter(
                Round.season_id == season_id,
                Round.status == "completed",
                Round.deleted_at.is_(None),
            )
            .order_by(Round.completed_at, Round.lock_time, Round.id)
            .all()
        )

    def _load_credits(self, round_ids):
        """Mapping of user id -> round id -> {place: count}"""
        credits = {}
        if not round_ids:
            return credits
        rows = ScoreDetail.query.filter(ScoreDetail.round_id.in_(round_ids)).all()
        for row in rows:
            credits.setdefault(row.user_id, {}).setdefault(row.round_id, {})[row.place] = row.count
        return credits

    def compute_standings(self, season, points=None):
        """
        Ranked standings for a season.

        Args:
            season: Season to aggregate
            points: Optional place -> points map; defaults to the values the
                season is scored with

        Returns:
            list of dicts with user_id, user_name, total_points, round_points
            and rank, best first
        """
        if points is None:
            points = settings_service.get_points_settings_for_season(season)

        rounds = self.get_completed_rounds(season.id)
        round_ids = [r.id for r in rounds]
        credits = self._load_credits(round_ids)

        member_ids = {
            row.user_id for row in SeasonParticipant.query.filter_by(season_id=season.id)
        }
        user_ids = member_ids | set(credits)
        users = {}
        if user_ids:
            users = {u.id: u for u in User.query.filter(User.id.in_(user_ids)).all()}

        entries = []
        for user_id in user_ids:
            user = users.get(user_id)
            if user is None:
                continue
            user_credits = credits.get(user_id, {})
            per_round = {
                round_id: round_points(user_credits.get(round_id, {}), points)
                for round_id in round_ids
            }
            entries.append(
                {
                    "user_id": user_id,
                    "user_name": user.name,
                    "total_points": sum(per_round.values()),
                    "round_points": per_round,
                }
            )

        entries.sort(key=lambda e: (-e["total_points"], e["user_name"].lower(), e["user_id"]))
        return assign_ranks(entries)

    def get_season_leaderboard(self, season_id):
        """Cached leaderboard payload for the public API"""
        return query_cache.get_or_set(
            LEADERBOARD, f"season:{season_id}", lambda: self._build_leaderboard(season_id)
        )

    def _build_leaderboard(self, season_id):
        season = Season.get_visible(season_id)
        if season is None:
            raise NotFoundError("Season not found")

        points = settings_service.get_points_settings_for_season(season)
        entries = self.compute_standings(season, points=points)
        rounds = self.get_completed_rounds(season.id)
        pick_rounds = [r for r in season.get_live_rounds() if r.status != "draft"]
        picks = self._load_picks([r.id for r in pick_rounds])

        return {
            "season": season.to_dict(),
            "rounds": [r.to_dict() for r in rounds],
            "pick_rounds": [r.to_dict() for r in pick_rounds],
            "points": {str(place): value for place, value in sorted(points.items())},
            "entries": [
                dict(
                    entry,
                    round_points={str(k): v for k, v in entry["round_points"].items()},
                    picks={
                        str(r.id): pick_summary(picks.get((entry["user_id"], r.id)), r)
                        for r in pick_rounds
                    },
                )
                for entry in entries
            ],
        }

    def _load_picks(self, round_ids):
        """Mapping of (user id, round id) -> Pick"""
        if not round_ids:
            return {}
        rows = Pick.query.filter(Pick.round_id.in_(round_ids)).all()
        return {(pick.user_id, pick.round_id): pick for pick in rows}

    def get_cumulative_graph(self, season_id):
        """Running totals per participant after each completed round"""
        return query_cache.get_or_set(
            LEADERBOARD, f"graph:{season_id}", lambda: self._build_graph(season_id)
        )

    def _build_graph(self, season_id):
        season = Season.get_visible(season_id)
        if season is None:
            raise NotFoundError("Season not found")

        entries = self.compute_standings(season)
        rounds = self.get_completed_rounds(season.id)

        labels = ["Start"] + [r.sport_name for r in rounds]
        series = []
        for entry in entries:
            running = 0
            values = [0]
            for round_obj in rounds:
                running += entry["round_points"].get(round_obj.id, 0)
                values.append(running)
            series.append(
                {"user_id": entry["user_id"], "user_name": entry["user_name"], "points": values}
            )

        return {"season_id": season.id, "labels": labels, "series": series}


leaderboard_service = LeaderboardService()


def invalidate_leaderboards():
    query_cache.invalidate_prefix(LEADERBOARD)
    logger.debug("Leaderboard cache invalidated")
