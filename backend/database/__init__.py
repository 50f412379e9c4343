from .connection import get_engine, get_session_factory, init_db, close_db, Base

# Import ticket models to ensure they are registered with Base
from .ticket_models import TicketDB

__all__ = [
    'get_engine', 'get_session_factory', 'init_db', 'close_db', 'Base',
    'TicketDB',
]
