"""Post-commit effects.

Work that must run only after the authoritative state change has been
committed (notifications, discount usage) is queued as named effects by
command handlers and executed by the caller once ``process()`` returns.
A failing effect never unwinds the committed change: it is logged and
reported back as a warning.
"""

from collections.abc import Callable
from dataclasses import dataclass

import structlog

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PostCommitEffect:
    name: str
    action: Callable[[], None]


def run_post_commit(effects, **context) -> list[str]:
    """Run each effect independently and return warnings for those that failed."""
    warnings = []
    for effect in effects:
        try:
            effect.action()
        except Exception as exc:
            logger.warning(
                "Post-commit effect failed",
                effect=effect.name,
                error=str(exc),
                **context,
            )
            warnings.append(f"{effect.name}: {exc}")
        else:
            logger.info("Post-commit effect completed", effect=effect.name, **context)
    return warnings
