import logging
from functools import partial
from typing import Callable, List, Tuple

logger = logging.getLogger(__name__)


class PostCommitEffects:
    """
    Side effects collected while a transaction is open and executed only
    after it has committed.

    Services queue notification enqueueing, audit records and triggered
    promotions here instead of calling collaborators inside ``transactional``.
    A failing effect is logged and skipped: the booking state it follows is
    already committed, and the owning subsystem retries on its own schedule.
    """

    def __init__(self):
        self._effects: List[Tuple[str, Callable[[], object]]] = []

    def add(self, name: str, func: Callable, *args, **kwargs) -> None:
        self._effects.append((name, partial(func, *args, **kwargs)))

    def __len__(self) -> int:
        return len(self._effects)

    def run(self) -> int:
        """Runs queued effects in order. Returns the number of failed effects."""
        effects, self._effects = self._effects, []
        failures = 0
        for name, effect in effects:
            try:
                effect()
            except Exception as e:
                failures += 1
                logger.exception(f"Post-commit effect '{name}' failed: {e}")
        if failures:
            logger.warning(f"{failures} of {len(effects)} post-commit effects failed")
        return failures
