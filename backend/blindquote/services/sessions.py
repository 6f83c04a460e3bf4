import logging
import threading
from typing import Optional

from sqlmodel import select

from blindquote.db.session import get_session
from blindquote.models.quote import QuoteRecord, utcnow
from blindquote.services.state import (
    Action,
    QuoteState,
    StateChannel,
    apply,
    diff,
    generate_quote_number,
    new_state,
)

logger = logging.getLogger(__name__)

# held for every read and read-modify-write of a QuoteRecord
_store_lock = threading.Lock()


class SessionNotFound(LookupError):
    pass


class QuoteSessionStore:
    """Keeps one ``QuoteState`` per quote number in the database."""

    def __init__(self, channel: Optional[StateChannel] = None):
        self.channel = channel or StateChannel()

    def _record(self, session, quote_number: str) -> Optional[QuoteRecord]:
        return session.exec(select(QuoteRecord).where(QuoteRecord.quote_number == quote_number)).first()

    def _unique_quote_number(self, session) -> str:
        candidate = generate_quote_number()
        while self._record(session, candidate) is not None:
            # same millisecond suffix already issued, step to the next one
            candidate = "QU" + str((int(candidate[2:]) + 1) % 1000000).zfill(6)
        return candidate

    def create(self) -> QuoteState:
        with _store_lock:
            session = get_session()
            try:
                state = new_state(self._unique_quote_number(session))
                session.add(QuoteRecord(quote_number=state.quote_number, state=state.model_dump_json()))
                session.commit()
            finally:
                session.close()
        logger.info("Created quote session quote=%s", state.quote_number)
        return state

    def get(self, quote_number: str) -> QuoteState:
        with _store_lock:
            session = get_session()
            try:
                record = self._record(session, quote_number)
                if record is None:
                    raise SessionNotFound(quote_number)
                return QuoteState.model_validate_json(record.state)
            finally:
                session.close()

    def dispatch(self, quote_number: str, action: Action) -> QuoteState:
        with _store_lock:
            session = get_session()
            try:
                record = self._record(session, quote_number)
                if record is None:
                    raise SessionNotFound(quote_number)
                old = QuoteState.model_validate_json(record.state)
                new = apply(old, action)
                record.state = new.model_dump_json()
                record.updated_at = utcnow()
                session.add(record)
                session.commit()
            finally:
                session.close()

        logger.debug("Applied %s to quote=%s", type(action).__name__, quote_number)
        self.channel.publish(quote_number, diff(old, new))
        return new


channel = StateChannel()
store = QuoteSessionStore(channel)


def get_store() -> QuoteSessionStore:
    return store
