"""Bonus content handed out when a player completes a category"""

import logging
from typing import Optional

from sqlalchemy import func, select

from quizrank.core.database import SessionFactory, session_scope
from quizrank.models.quiz import Joke
from quizrank.schemas.quiz import BonusPayload

logger = logging.getLogger(__name__)


class JokeBonusProvider:
    """Picks a random joke"""

    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory

    def random_bonus(self) -> Optional[BonusPayload]:
        with session_scope(self.session_factory) as session:
            joke = session.scalar(select(Joke).order_by(func.random()).limit(1))
            if joke is None:
                logger.warning("Category completed but no jokes are available")
                return None
            return BonusPayload(joke=joke.text, image_url=joke.image_url)
