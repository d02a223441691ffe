"""
Competition Dashboard - Change Feed
Push-style subscriptions over the store's collections, plus the in-memory team projection
"""

import inspect
import itertools
import threading
import weakref
from typing import Any, Callable, Dict, List, Optional

from loguru import logger

from models import JudgeScore, Team, TeamScore, User, team_number_key
from .schema import COLLECTIONS, DatabaseManager

Snapshot = List[Any]
Callback = Callable[[Snapshot], None]

ROW_MODELS = {
    "teams": Team,
    "judge_scores": JudgeScore,
    "team_scores": TeamScore,
    "users": User,
}


class ChangeFeed:
    """Delivers collection snapshots to subscribers whenever a collection's revision moves.

    Every write to a collection bumps its revision (a trigger in the schema), so
    changes made by other processes are picked up by the next poll as well.
    """

    def __init__(self, db_manager: DatabaseManager):
        self.db_manager = db_manager
        self._subscribers: Dict[str, Dict[int, Callable[[], Optional[Callback]]]] = {c: {} for c in COLLECTIONS}
        self._revisions: Dict[str, int] = {}
        self._tokens = itertools.count(1)
        self._lock = threading.RLock()

    def load(self, collection: str) -> Snapshot:
        """Read a typed snapshot of a collection"""
        model = ROW_MODELS[collection]
        return [model.from_row(row) for row in self.db_manager.fetch_collection(collection)]

    def subscribe(self, collection: str, callback: Callback) -> Callable[[], None]:
        """Push the current snapshot now and on every later change. Returns an unsubscribe callable.

        A bound-method callback is held weakly: once its object is garbage
        collected (an abandoned browser session's projection, say) the
        subscription ends on its own.
        """
        if collection not in self._subscribers:
            raise ValueError(f"Unknown collection: {collection}")

        token = next(self._tokens)

        def unsubscribe(_ref=None) -> None:
            with self._lock:
                self._subscribers[collection].pop(token, None)

        ref = weakref.WeakMethod(callback, unsubscribe) if inspect.ismethod(callback) else (lambda: callback)

        revision = self.db_manager.get_revisions().get(collection, 0)
        with self._lock:
            self._subscribers[collection][token] = ref
            self._revisions.setdefault(collection, revision)

        callback(self.load(collection))
        return unsubscribe

    def once(self, collection: str) -> Snapshot:
        """A subscription that completes after its first value"""
        received: List[Snapshot] = []
        unsubscribe = self.subscribe(collection, received.append)
        unsubscribe()
        return received[0]

    def subscriber_count(self, collection: str) -> int:
        with self._lock:
            return len(self._subscribers[collection])

    def poll(self) -> List[str]:
        """Check revisions and push fresh snapshots for collections that changed"""
        revisions = self.db_manager.get_revisions()

        with self._lock:
            changed = []
            for collection, revision in revisions.items():
                if collection not in self._subscribers:
                    continue
                if self._revisions.get(collection) != revision:
                    self._revisions[collection] = revision
                    if self._subscribers[collection]:
                        changed.append(collection)
            refs = {c: list(self._subscribers[c].values()) for c in changed}

        for collection, collection_refs in refs.items():
            callbacks = [callback for callback in (ref() for ref in collection_refs) if callback is not None]
            if not callbacks:
                continue
            snapshot = self.load(collection)
            logger.debug(f"Pushing {len(snapshot)} {collection} records to {len(callbacks)} subscriber(s)")
            for callback in callbacks:
                try:
                    callback(snapshot)
                except Exception:
                    # One broken view must not starve the other subscribers
                    logger.exception(f"Subscriber for {collection} failed")

        return changed

    def notify(self) -> List[str]:
        """Called by writers after a commit"""
        return self.poll()


class TeamProjection:
    """In-memory view of the teams collection with a team-number index"""

    def __init__(self):
        self._teams: Dict[str, Team] = {}
        self._by_number: Dict[str, str] = {}
        self.version = 0

    def apply(self, snapshot: List[Team]) -> None:
        teams: Dict[str, Team] = {}
        by_number: Dict[str, str] = {}
        for team in sorted(snapshot, key=lambda t: team_number_key(t.team_number)):
            teams[team.id] = team
            by_number.setdefault(team.team_number, team.id)
        self._teams = teams
        self._by_number = by_number
        self.version += 1

    def attach(self, feed: ChangeFeed) -> Callable[[], None]:
        """Subscribe to the teams collection; returns the unsubscribe callable"""
        return feed.subscribe("teams", self.apply)

    def all(self) -> List[Team]:
        return list(self._teams.values())

    def get(self, team_id: str) -> Optional[Team]:
        return self._teams.get(team_id)

    def find_by_number(self, team_number: str) -> Optional[Team]:
        team_id = self._by_number.get((team_number or "").strip())
        return self._teams.get(team_id) if team_id else None

    def __len__(self) -> int:
        return len(self._teams)
